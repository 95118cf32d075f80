from django import template

register = template.Library()


@register.filter
def compact_number(value):
    """1234 -> '1.2K', 3400000 -> '3.4M'."""
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return value
    if number >= 1000000:
        return f"{number / 1000000:.1f}M"
    if number >= 1000:
        return f"{number / 1000:.1f}K"
    return str(int(number))
