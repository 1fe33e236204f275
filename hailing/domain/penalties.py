"""SLA penalty catalogue.

Amounts here are defaults offered to administrators; the amount actually
debited is always whatever the admin (or the cancelling request)
supplies.
"""

import enum


class PenaltyType(str, enum.Enum):
    CANCELLATION_AFTER_ACCEPTANCE = "cancellation_after_acceptance"
    CANCELLATION_12H_BEFORE = "cancellation_12h_before"
    CANCELLATION_12H_WITHIN = "cancellation_12h_within"
    CANCELLATION_3H_WITHIN = "cancellation_3h_within"
    WRONG_CAR_ASSIGNED = "wrong_car_assigned"
    WRONG_DRIVER_ASSIGNED = "wrong_driver_assigned"
    CNG_CAR_NO_CARRIER = "cng_car_no_carrier"
    JOURNEY_NOT_COMPLETED_IN_APP = "journey_not_completed_in_app"
    CAR_NOT_CLEAN = "car_not_clean"
    CAR_NOT_GOOD_CONDITION = "car_not_good_condition"
    DRIVER_MISBEHAVED = "driver_misbehaved"


class PenaltyStatus(str, enum.Enum):
    ACTIVE = "active"
    WAIVED = "waived"
    PAID = "paid"


DEFAULT_PENALTY_AMOUNTS: dict[PenaltyType, int] = {
    PenaltyType.CANCELLATION_AFTER_ACCEPTANCE: 100,
    PenaltyType.CANCELLATION_12H_BEFORE: 300,
    PenaltyType.CANCELLATION_12H_WITHIN: 300,
    PenaltyType.CANCELLATION_3H_WITHIN: 500,
    PenaltyType.WRONG_CAR_ASSIGNED: 200,
    PenaltyType.WRONG_DRIVER_ASSIGNED: 200,
    PenaltyType.CNG_CAR_NO_CARRIER: 200,
    PenaltyType.JOURNEY_NOT_COMPLETED_IN_APP: 100,
    PenaltyType.CAR_NOT_CLEAN: 200,
    PenaltyType.CAR_NOT_GOOD_CONDITION: 250,
    PenaltyType.DRIVER_MISBEHAVED: 200,
}


def default_amount(penalty_type: PenaltyType) -> int:
    return DEFAULT_PENALTY_AMOUNTS.get(penalty_type, 0)
