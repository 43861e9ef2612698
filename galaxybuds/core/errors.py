"""Domain-specific errors for galaxybuds."""


class GalaxyBudsError(Exception):
    """Base error for galaxybuds."""


class SettingsError(GalaxyBudsError):
    """Raised when the settings file cannot be read or written."""


class SettingsValidationError(SettingsError):
    """Raised when the settings file does not conform to schema."""


class DeviceSelectionError(GalaxyBudsError):
    """Raised when device matching cannot resolve a single target."""


class DeviceDiscoveryError(GalaxyBudsError):
    """Raised when the adapter is unavailable or device enumeration fails."""


class TransportError(GalaxyBudsError):
    """Base transport error."""


class BluetoothHostError(TransportError):
    """Raised when a call into the host Bluetooth stack fails."""


class TransportConnectError(TransportError):
    """Raised when device connect, profile registration or accept fails."""


class NoConnectionRequestError(TransportConnectError):
    """Raised when the registered profile yields no connection request."""


class ChannelClosedError(GalaxyBudsError):
    """Raised when sending on an output channel whose consumer is gone."""
