"""
Chat app order links.

Builds pre-filled WhatsApp and Telegram links for a product.
"""

from urllib.parse import quote

from storefront.models.product import Product
from storefront.utils.config_loader import MessagingConfig


def format_price(amount: float, currency: str = "ETB") -> str:
    """Format a birr amount without trailing decimals for whole values."""
    if float(amount).is_integer():
        return f"{int(amount):,} {currency}"
    return f"{amount:,.2f} {currency}"


def order_message(product: Product, currency: str = "ETB") -> str:
    return f"Hello! I'm interested in ordering: {product.name} ({format_price(product.final_price_local, currency)})"


def whatsapp_order_url(product: Product, config: MessagingConfig) -> str:
    """Link that opens a WhatsApp chat with the order message filled in."""
    phone = "".join(ch for ch in config.whatsapp_phone if ch.isdigit())
    message = order_message(product, config.currency_label)
    return f"https://wa.me/{phone}?text={quote(message)}"


def telegram_order_url(product: Product, config: MessagingConfig) -> str:
    """Link that opens the shop's Telegram chat with the order message filled in."""
    handle = config.telegram_handle.lstrip("@")
    message = order_message(product, config.currency_label)
    return f"https://t.me/{handle}?text={quote(message)}"


def order_links(product: Product, config: MessagingConfig) -> dict[str, str]:
    return {
        "whatsapp": whatsapp_order_url(product, config),
        "telegram": telegram_order_url(product, config),
    }
