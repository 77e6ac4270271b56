"""Colour conversion from authoring RGB to Hue xy chromaticity."""

# Wide-gamut linear RGB to XYZ (Hue reference conversion)
RGB_TO_XYZ = (
    (0.664511, 0.154324, 0.162028),
    (0.283881, 0.729298, 0.027045),
    (0.000088, 0.083861, 0.088009),
)


def parse_hex_colour(hex_colour: str) -> tuple[int, int, int]:
    """Parse '#RRGGBB' (or 'RRGGBB') into 8-bit channels.

    Raises:
        ValueError: If the string isn't a 24-bit hex colour
    """
    value = hex_colour.strip()
    if value.startswith('#'):
        value = value[1:]
    if len(value) != 6:
        raise ValueError(f"Invalid hex colour: {hex_colour!r}")
    try:
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    except ValueError:
        raise ValueError(f"Invalid hex colour: {hex_colour!r}") from None


def gamma_correct(channel: float) -> float:
    """Convert an sRGB channel in [0, 1] to linear light."""
    if channel > 0.04045:
        return ((channel + 0.055) / 1.055) ** 2.4
    return channel / 12.92


def to_device_space(hex_colour: str) -> tuple[float, float]:
    """Convert a hex colour to CIE xy coordinates for the bridge.

    Pure black has no chromaticity and maps to (0, 0).

    Args:
        hex_colour: 24-bit colour such as '#FF0000'

    Returns:
        (x, y) tuple, each in [0, 1]
    """
    red, green, blue = (gamma_correct(c / 255) for c in parse_hex_colour(hex_colour))

    x_, y_, z_ = (row[0] * red + row[1] * green + row[2] * blue for row in RGB_TO_XYZ)

    total = x_ + y_ + z_
    if total == 0:
        return 0.0, 0.0

    return x_ / total, y_ / total
