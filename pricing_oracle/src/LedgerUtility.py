"""LedgerUtility: Abstract base class for ledger interaction."""

from abc import abstractmethod

from .ConversionTable import ConversionTable


class LedgerUtility:
    """Abstract base class for ledger utility implementations.

    Provides interface for reading the global definition currently in force
    and for submitting a conversion table.
    """

    @abstractmethod
    def fetch_global_definition(self) -> bytes:
        """Fetch the action hash of the current global definition.

        :returns: 39-byte raw action hash.
        """
        pass

    @abstractmethod
    def submit_table(self, table: ConversionTable) -> bytes:
        """Submit a conversion table.

        :param table: Table to submit.
        :returns: 39-byte raw action hash of the created entry.
        """
        pass
