from decimal import Decimal
from types import SimpleNamespace

from utils_currency import format_currency, format_number, settings_currency


class TestFormatCurrency:
    """Display formatting for money amounts."""

    def test_default_kes(self):
        assert format_currency(Decimal('1645.16')) == 'KES 1,645'

    def test_none_is_zero(self):
        assert format_currency(None) == 'KES 0'
        assert format_currency(None, 'USD', 'en-US') == 'USD 0'

    def test_rounds_half_up(self):
        assert format_currency(Decimal('999.50')) == 'KES 1,000'

    def test_symbol_currencies(self):
        assert format_currency(1500, 'USD', 'en-US') == '$1,500'
        assert format_currency(-2500, 'GBP', 'en-GB') == '-£2,500'

    def test_decimals(self):
        assert format_currency(Decimal('950.5'), decimals=2) == 'KES 950.50'

    def test_locale_separators(self):
        assert format_currency(Decimal('1234567.891'), 'EUR', 'de-DE', decimals=2) == 'EUR 1.234.567,89'
        assert format_number(1234567, 'fr-FR') == '1\u202f234\u202f567'

    def test_negative(self):
        assert format_currency(-2500) == 'KES -2,500'

    def test_small_amounts(self):
        assert format_number(0) == '0'
        assert format_number(999) == '999'


class TestSettingsCurrency:
    """Resolving the owner's currency and locale."""

    def test_defaults_from_config(self):
        config = {'DEFAULT_CURRENCY': 'KES', 'DEFAULT_LOCALE': 'en-KE'}
        assert settings_currency(None, config) == ('KES', 'en-KE')

    def test_owner_settings_win(self):
        config = {'DEFAULT_CURRENCY': 'KES', 'DEFAULT_LOCALE': 'en-KE'}
        settings = SimpleNamespace(currency='USD', locale='en-US')
        assert settings_currency(settings, config) == ('USD', 'en-US')
