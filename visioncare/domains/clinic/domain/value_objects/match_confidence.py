"""Identity match confidence."""

from enum import Enum


class MatchConfidence(str, Enum):
    """How strongly a registry record is known to be the queried person.

    Ordered from strongest to weakest. Only EXACT_CPF and PHONE_AND_NAME are
    trusted automatically; the rest need manual confirmation.
    """

    EXACT_CPF = "exact_cpf"
    PHONE_AND_NAME = "phone_and_name"
    PHONE_ONLY = "phone_only"
    NONE = "none"

    @property
    def rank(self) -> int:
        order = {
            "exact_cpf": 3,
            "phone_and_name": 2,
            "phone_only": 1,
            "none": 0,
        }
        return order[self.value]

    def is_trusted(self) -> bool:
        return self.rank >= MatchConfidence.PHONE_AND_NAME.rank
