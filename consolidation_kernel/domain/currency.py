"""Currency -- ISO 4217 registry used to validate currency codes."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from consolidation_kernel.exceptions import InvalidCurrencyError


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount in this currency."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of ISO 4217 currencies a consolidation group may report in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        info.code: info
        for info in (
            CurrencyInfo("USD", 2, "US Dollar"),
            CurrencyInfo("EUR", 2, "Euro"),
            CurrencyInfo("GBP", 2, "Pound Sterling"),
            CurrencyInfo("JPY", 0, "Japanese Yen"),
            CurrencyInfo("CHF", 2, "Swiss Franc"),
            CurrencyInfo("CAD", 2, "Canadian Dollar"),
            CurrencyInfo("AUD", 2, "Australian Dollar"),
            CurrencyInfo("NZD", 2, "New Zealand Dollar"),
            CurrencyInfo("CNY", 2, "Chinese Yuan"),
            CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
            CurrencyInfo("SGD", 2, "Singapore Dollar"),
            CurrencyInfo("INR", 2, "Indian Rupee"),
            CurrencyInfo("KRW", 0, "South Korean Won"),
            CurrencyInfo("MXN", 2, "Mexican Peso"),
            CurrencyInfo("BRL", 2, "Brazilian Real"),
            CurrencyInfo("ZAR", 2, "South African Rand"),
            CurrencyInfo("SEK", 2, "Swedish Krona"),
            CurrencyInfo("NOK", 2, "Norwegian Krone"),
            CurrencyInfo("DKK", 2, "Danish Krone"),
            CurrencyInfo("PLN", 2, "Polish Zloty"),
            CurrencyInfo("CZK", 2, "Czech Koruna"),
            CurrencyInfo("HUF", 2, "Hungarian Forint"),
            CurrencyInfo("TRY", 2, "Turkish Lira"),
            CurrencyInfo("ILS", 2, "Israeli New Shekel"),
            CurrencyInfo("AED", 2, "UAE Dirham"),
            CurrencyInfo("SAR", 2, "Saudi Riyal"),
            CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
            CurrencyInfo("BHD", 3, "Bahraini Dinar"),
            CurrencyInfo("OMR", 3, "Omani Rial"),
            CurrencyInfo("JOD", 3, "Jordanian Dinar"),
            CurrencyInfo("CLP", 0, "Chilean Peso"),
            CurrencyInfo("COP", 2, "Colombian Peso"),
            CurrencyInfo("ARS", 2, "Argentine Peso"),
            CurrencyInfo("PEN", 2, "Peruvian Sol"),
            CurrencyInfo("THB", 2, "Thai Baht"),
            CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
            CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
            CurrencyInfo("PHP", 2, "Philippine Peso"),
            CurrencyInfo("VND", 0, "Vietnamese Dong"),
            CurrencyInfo("TWD", 2, "New Taiwan Dollar"),
            CurrencyInfo("EGP", 2, "Egyptian Pound"),
            CurrencyInfo("NGN", 2, "Nigerian Naira"),
            CurrencyInfo("KES", 2, "Kenyan Shilling"),
            CurrencyInfo("RON", 2, "Romanian Leu"),
            CurrencyInfo("ISK", 0, "Icelandic Krona"),
        )
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check whether a code is a registered ISO 4217 currency."""
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Decimal places for a currency; unknown codes default to 2."""
        info = cls._CURRENCIES.get(code)
        return info.decimal_places if info else 2

    @classmethod
    def validate(cls, code: str) -> str:
        """
        Normalize and validate a currency code.

        Raises:
            InvalidCurrencyError: If the code is not a registered currency.
        """
        normalized = code.upper().strip() if isinstance(code, str) else ""
        if normalized not in cls._CURRENCIES:
            raise InvalidCurrencyError(str(code))
        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
