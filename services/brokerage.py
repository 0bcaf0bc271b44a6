# services/brokerage.py
"""
Brokerage calculation policies.

Two business rules are in use and they are not interchangeable:

* ``flat_rate_per_unit``: the rate is a currency amount charged per unit
  traded. No tax is added.
* ``percentage_of_value``: the rate is a percentage of ``qty x price``. GST
  is decided per entry: when an entry's value plus its brokerage exceeds the
  GST threshold, GST is charged on that entry's sum.

Both are selectable by name so invoices can be produced under either.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from config import BROKERAGE_POLICY, GST_RATE, GST_THRESHOLD
from services.errors import ConfigurationError, ValidationError
from services.normalizer import Transaction

logger = logging.getLogger(__name__)


def _flat_line(transaction: Transaction, rate: float) -> float:
    return transaction.quantity * rate


def _percentage_line(transaction: Transaction, rate: float) -> float:
    return transaction.quantity * transaction.price * rate / 100


@dataclass(frozen=True)
class BrokeragePolicy:
    name: str
    line_amount: Callable[[Transaction, float], float]
    charges_gst: bool = False

    def brokerage(self, transactions: Iterable[Transaction], rate: float) -> float:
        transactions = list(transactions)
        if self.charges_gst:
            return sum(self.line_amount(t, rate) for t in transactions)
        # Computed on the total so the amount is exactly total quantity x rate.
        return sum(t.quantity for t in transactions) * rate

    def gst(self, transactions: Iterable[Transaction], rate: float) -> float:
        """GST summed over entries whose value plus brokerage is above the threshold."""
        if not self.charges_gst:
            return 0.0
        total = 0.0
        for t in transactions:
            taxable = t.quantity * t.price + self.line_amount(t, rate)
            if taxable > GST_THRESHOLD:
                total += taxable * GST_RATE
        return total


FLAT_RATE_PER_UNIT = BrokeragePolicy("flat_rate_per_unit", _flat_line)
PERCENTAGE_OF_VALUE = BrokeragePolicy("percentage_of_value", _percentage_line, charges_gst=True)

POLICIES: Dict[str, BrokeragePolicy] = {
    FLAT_RATE_PER_UNIT.name: FLAT_RATE_PER_UNIT,
    PERCENTAGE_OF_VALUE.name: PERCENTAGE_OF_VALUE,
}


def get_policy(name: Optional[str] = None) -> BrokeragePolicy:
    """Looks a policy up by name; None selects the configured default."""
    if name is None:
        key = (BROKERAGE_POLICY or FLAT_RATE_PER_UNIT.name).strip().lower()
        if key not in POLICIES:
            raise ConfigurationError(f"BROKERAGE_POLICY '{BROKERAGE_POLICY}' is not one of {sorted(POLICIES)}")
        return POLICIES[key]
    policy = POLICIES.get(name.strip().lower())
    if policy is None:
        raise ValidationError("policy", f"Unknown brokerage policy '{name}'. Use one of {sorted(POLICIES)}")
    return policy
