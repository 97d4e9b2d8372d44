from decimal import Decimal, ROUND_HALF_UP

# (thousands separator, decimal separator) by language
SEPARATORS = {
    'en': (',', '.'),
    'sw': (',', '.'),
    'de': ('.', ','),
    'es': ('.', ','),
    'it': ('.', ','),
    'nl': ('.', ','),
    'pt': ('.', ','),
    'fr': ('\u202f', ','),  # narrow no-break space
}

# Currencies shown with a symbol instead of the ISO code
SYMBOLS = {
    ('USD', 'en-US'): '$',
    ('GBP', 'en-GB'): '£',
    ('EUR', 'en-GB'): '€',
}


def _separators(locale):
    language = (locale or 'en').split('-')[0].lower()
    return SEPARATORS.get(language, SEPARATORS['en'])


def format_number(value, locale='en-KE', decimals=0):
    thousands, point = _separators(locale)
    quant = Decimal(1).scaleb(-decimals)
    amount = Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP)

    sign = '-' if amount < 0 else ''
    whole, _, fraction = f"{abs(amount):f}".partition('.')

    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)

    text = thousands.join(groups)
    if decimals:
        text = f"{text}{point}{fraction}"
    return f"{sign}{text}"


def format_currency(value, currency='KES', locale='en-KE', decimals=0):
    """
    Formats a money amount for display. Currency and locale are always
    passed in by the caller (see settings_currency), never read from globals.

    None is shown as a zero amount in the given currency.
    """
    if value is None:
        return f"{currency} 0"

    text = format_number(value, locale, decimals)
    symbol = SYMBOLS.get((currency, locale))
    if symbol:
        if text.startswith('-'):
            return f"-{symbol}{text[1:]}"
        return f"{symbol}{text}"
    return f"{currency} {text}"


def settings_currency(settings, config):
    """Resolves the (currency, locale) pair for an owner."""
    if settings is not None:
        return settings.currency, settings.locale
    return config['DEFAULT_CURRENCY'], config['DEFAULT_LOCALE']
