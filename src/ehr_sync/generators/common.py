"""
Seedable random source shared by the synthetic record generators.

Faker provides demographics, ``random.Random`` drives every choice and count
so that a given seed reproduces the same batch.
"""

import itertools
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Sequence, Tuple, TypeVar

from faker import Faker

from ehr_sync.generators import reference_data as ref

T = TypeVar("T")

ABNORMAL_PROBABILITY = 0.2


@dataclass
class PersonSeed:
    """Demographics of one synthetic patient, before system specific shaping."""
    given_name: str
    family_name: str
    middle_name: Optional[str]
    gender: str  # male, female
    birth_date: date
    ssn: str
    email: str
    home_phone: str
    mobile_phone: str
    street: str
    city: str
    state: str
    postal_code: str
    race_code: str
    ethnicity_code: str
    marital_status: str
    language: str


@dataclass
class LabValue:
    test: ref.LabTest
    value: float
    interpretation: str  # N, L, H

    @property
    def is_abnormal(self) -> bool:
        return self.interpretation != "N"

    @property
    def reference_range(self) -> str:
        return f"{self.test.low}-{self.test.high}"


@dataclass
class VitalValue:
    vital: ref.VitalSign
    value: float


class SyntheticDataFactory:
    """Random source for one generated batch."""

    def __init__(self, seed: Optional[int] = None, locale: str = "en_US"):
        self.seed = seed
        self.random = random.Random(seed)
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)
        self._ids = itertools.count(self.random.randint(100000, 500000))

    def next_id(self) -> int:
        """Identifier unique within this batch."""
        return next(self._ids)

    def choice(self, items: Sequence[T]) -> T:
        return self.random.choice(items)

    def sample(self, items: Sequence[T], low: int, high: int) -> list:
        """Between ``low`` and ``high`` distinct items."""
        count = min(self.random.randint(low, high), len(items))
        return self.random.sample(list(items), count)

    def between(self, bounds: Tuple[int, int]) -> int:
        return self.random.randint(*bounds)

    def chance(self, probability: float) -> bool:
        return self.random.random() < probability

    def digits(self, length: int) -> str:
        return "".join(str(self.random.randint(0, 9)) for _ in range(length))

    def recent_datetime(self, days: int = 365) -> datetime:
        offset = timedelta(seconds=self.random.randint(0, days * 24 * 3600))
        return (datetime.now() - offset).replace(microsecond=0)

    def person(self) -> PersonSeed:
        gender = self.choice(("male", "female"))
        given = self.fake.first_name_male() if gender == "male" else self.fake.first_name_female()
        return PersonSeed(
            given_name=given,
            family_name=self.fake.last_name(),
            middle_name=self.fake.first_name() if self.chance(0.5) else None,
            gender=gender,
            birth_date=self.fake.date_of_birth(minimum_age=1, maximum_age=90),
            ssn=f"{self.digits(3)}-{self.digits(2)}-{self.digits(4)}",
            email=self.fake.email(),
            home_phone=f"({self.digits(3)}) {self.digits(3)}-{self.digits(4)}",
            mobile_phone=f"({self.digits(3)}) {self.digits(3)}-{self.digits(4)}",
            street=self.fake.street_address(),
            city=self.fake.city(),
            state=self.fake.state_abbr(),
            postal_code=self.fake.zipcode(),
            race_code=self.choice(ref.RACE_CODES),
            ethnicity_code=self.choice(ref.ETHNICITY_CODES),
            marital_status=self.choice(ref.MARITAL_STATUS_CODES),
            language=self.choice(ref.LANGUAGES),
        )

    def provider(self) -> ref.Provider:
        return self.choice(ref.PROVIDERS)

    def facility(self) -> ref.FacilityInfo:
        return self.choice(ref.FACILITIES)

    def diagnosis(self) -> ref.Diagnosis:
        return self.choice(ref.DIAGNOSES)

    def lab_panel(self) -> ref.LabPanel:
        return self.choice(ref.LAB_PANELS)

    def lab_value(self, test: Optional[ref.LabTest] = None) -> LabValue:
        test = test or self.choice(ref.LAB_TESTS)
        if self.chance(ABNORMAL_PROBABILITY):
            if self.chance(0.5):
                value = self.random.uniform(test.low * 0.7, test.low * 0.95)
            else:
                value = self.random.uniform(test.high * 1.05, test.high * 1.3)
        else:
            value = self.random.uniform(test.low, test.high)
        value = round(value, 1)
        if value < test.low:
            interpretation = "L"
        elif value > test.high:
            interpretation = "H"
        else:
            interpretation = "N"
        return LabValue(test=test, value=value, interpretation=interpretation)

    def lab_values(self, low: int, high: int) -> list:
        return [self.lab_value(test) for test in self.sample(ref.LAB_TESTS, low, high)]

    def vital_value(self, vital: ref.VitalSign) -> VitalValue:
        return VitalValue(vital=vital, value=round(self.random.uniform(vital.low, vital.high), 1))
