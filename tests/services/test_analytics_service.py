from datetime import datetime

import pytest

from app.models.appointment import Appointment, AppointmentStatus
from app.services.analytics_service import get_clinic_stats
from tests.conftest import MONDAY


def _appointment(patient, provider, hour: int, status: AppointmentStatus) -> Appointment:
    return Appointment(
        patient_id=patient.id,
        provider_id=provider.id,
        title="Visit",
        start_time=datetime(2030, 1, 7, hour, 0),
        end_time=datetime(2030, 1, 7, hour, 30),
        status=status,
    )


async def test_clinic_stats_counts_and_rates(session, patient, provider, admin, monday_hours) -> None:
    session.add_all(
        [
            _appointment(patient, provider, 9, AppointmentStatus.SCHEDULED),
            _appointment(patient, provider, 10, AppointmentStatus.COMPLETED),
            _appointment(patient, provider, 11, AppointmentStatus.CANCELLED),
            _appointment(patient, provider, 12, AppointmentStatus.NO_SHOW),
        ]
    )
    await session.commit()

    stats = await get_clinic_stats(session, now=datetime(2030, 1, 7, 8, 0))

    assert stats.total_users == 3
    assert stats.total_providers == 1
    assert stats.total_patients == 1
    assert stats.total_appointments == 4
    assert stats.today_appointments == 1
    assert stats.cancellation_rate == 33.33
    assert stats.no_show_rate == 33.33
    assert stats.daily_bookings == {MONDAY.isoformat(): 4}

    [utilization] = stats.provider_utilization
    assert utilization.booked_minutes == 60
    assert utilization.available_minutes == 8 * 60 * 4
    assert utilization.utilization == pytest.approx(60 / (8 * 60 * 4) * 100, abs=0.01)


async def test_clinic_stats_without_appointments(session, provider) -> None:
    stats = await get_clinic_stats(session)

    assert stats.total_appointments == 0
    assert stats.cancellation_rate == 0.0
    assert stats.provider_utilization[0].utilization == 0.0
