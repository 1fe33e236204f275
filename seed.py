"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 5 sample riders
  - 4 sample drivers with opening wallet credits
  - 6 approved vehicles (autos on per-km rates, cars / a bus on distance tiers)
  - 3 sample bookings (pending, accepted, completed) driven through the
    state machine so history, vehicle status and ledger stay consistent
"""

import asyncio

from sqlalchemy import text

from hailing.domain.entities import Location, TransitionPayload, TripDetails
from hailing.domain.enums import (
    ActorRole,
    BookingStatus,
    PaymentMethod,
    TripType,
    VehicleCategory,
)
from hailing.infrastructure.database import async_session_factory, engine
from hailing.infrastructure.models import DriverModel, RiderModel
from hailing.services.booking_machine import BookingStateMachine
from hailing.services.ledger import EarningsLedger
from hailing.services.vehicle_tracker import VehicleResourceTracker

# Pune railway station (approx)
HUB = Location(18.5286, 73.8743, "Pune Railway Station")

RIDERS = [
    {"name": "Aarav Sharma", "phone": "9800000001"},
    {"name": "Priya Patel", "phone": "9800000002"},
    {"name": "Rohan Mehta", "phone": "9800000003"},
    {"name": "Sneha Gupta", "phone": "9800000004"},
    {"name": "Vikram Singh", "phone": "9800000005"},
]

DRIVERS = [
    {"name": "Ananya Reddy", "phone": "9900000001", "opening_credit": 500},
    {"name": "Karan Joshi", "phone": "9900000002", "opening_credit": 0},
    {"name": "Meera Nair", "phone": "9900000003", "opening_credit": 1200},
    {"name": "Arjun Kumar", "phone": "9900000004", "opening_credit": 250},
]

CAR_TIERS = {
    "one-way": {"50km": 20, "100km": 18, "150km": 17, "200km": 16, "250km": 15, "300km": 14},
    "return": {"50km": 18, "100km": 16, "150km": 15, "200km": 14, "250km": 13, "300km": 12},
}
BUS_TIERS = {
    "one-way": {"50km": 60, "100km": 55, "150km": 52, "200km": 50, "250km": 48, "300km": 45},
}

VEHICLES = [
    {"driver": 0, "registration_number": "MH12AB1001", "category": VehicleCategory.AUTO,
     "brand": "Bajaj", "seating_capacity": 3, "auto_rate_one_way": 15, "auto_rate_return": 13},
    {"driver": 1, "registration_number": "MH12AB1002", "category": VehicleCategory.AUTO,
     "brand": "Piaggio", "seating_capacity": 3, "auto_rate_one_way": 14},
    {"driver": 2, "registration_number": "MH12CD2001", "category": VehicleCategory.CAR,
     "brand": "Maruti Dzire", "seating_capacity": 4, "distance_pricing": CAR_TIERS},
    {"driver": 2, "registration_number": "MH12CD2002", "category": VehicleCategory.CAR,
     "brand": "Toyota Innova", "seating_capacity": 7, "distance_pricing": CAR_TIERS},
    {"driver": 3, "registration_number": "MH12EF3001", "category": VehicleCategory.CAR,
     "brand": "Hyundai Aura", "seating_capacity": 4, "distance_pricing": CAR_TIERS},
    {"driver": 3, "registration_number": "MH12GH4001", "category": VehicleCategory.BUS,
     "brand": "Force Traveller", "seating_capacity": 17, "distance_pricing": BUS_TIERS},
]

ADMIN_ID = 1


def _trip(lat, lng, address, distance_km, trip_type=TripType.ONE_WAY):
    return TripDetails(
        pickup=HUB,
        destination=Location(lat, lng, address),
        date="2026-11-02",
        time="09:30",
        trip_type=trip_type,
        distance_km=distance_km,
        duration_min=int(distance_km * 2),
    )


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM riders"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Riders & drivers ──────────────────────────────────────────
        riders = [RiderModel(**r) for r in RIDERS]
        drivers = [
            DriverModel(name=d["name"], phone=d["phone"], wallet_balance=0)
            for d in DRIVERS
        ]
        session.add_all(riders + drivers)
        await session.flush()

        ledger = EarningsLedger(session)
        for driver, row in zip(drivers, DRIVERS):
            if row["opening_credit"]:
                await ledger.credit(driver.id, row["opening_credit"], "Opening balance")
        print(f"  Created {len(riders)} riders, {len(drivers)} drivers")

        # ── Vehicles ──────────────────────────────────────────────────
        tracker = VehicleResourceTracker(session)
        vehicles = []
        for row in VEHICLES:
            row = dict(row)
            owner = drivers[row.pop("driver")]
            vehicle = await tracker.register_vehicle(driver_id=owner.id, **row)
            await tracker.set_approval(vehicle.id, True, ADMIN_ID, notes="Seed data")
            vehicles.append(vehicle)
        await session.commit()
        print(f"  Created {len(vehicles)} approved vehicles")

        # ── Bookings (through the state machine) ──────────────────────
        machine = BookingStateMachine(session)

        await machine.open_booking(
            riders[0].id, vehicles[0].id,
            _trip(18.5204, 73.8567, "Shivajinagar", 4.2), PaymentMethod.CASH,
        )

        accepted = await machine.open_booking(
            riders[1].id, vehicles[2].id,
            _trip(18.7557, 73.4091, "Lonavala", 64.0), PaymentMethod.UPI,
        )
        await machine.transition(
            accepted.booking_number, BookingStatus.ACCEPTED,
            vehicles[2].driver_id, ActorRole.DRIVER,
        )

        completed = await machine.open_booking(
            riders[2].id, vehicles[4].id,
            _trip(19.0760, 72.8777, "Mumbai", 148.0, TripType.RETURN),
            PaymentMethod.CARD,
        )
        driver_id = vehicles[4].driver_id
        for status in (BookingStatus.ACCEPTED, BookingStatus.STARTED):
            await machine.transition(
                completed.booking_number, status, driver_id, ActorRole.DRIVER
            )
        await machine.transition(
            completed.booking_number, BookingStatus.COMPLETED, driver_id,
            ActorRole.DRIVER, TransitionPayload(actual_distance_km=151.5),
        )
        print("  Created 3 bookings (pending, accepted, completed)")

        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
