"""Package metadata for joistmail."""

__app_name__ = "joistmail"
__product__ = "JoistMailer"
__version__ = "0.3.0"
__author__ = "Optimal Computing Limited"
__license__ = "MIT"

__all__ = ["__app_name__", "__author__", "__license__", "__product__", "__version__"]
