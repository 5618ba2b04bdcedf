"""Filter catalogue, registry and description parser.

A filter is any object with an ``apply(image) -> image`` method. Filters are
looked up by identifier in ``FILTERS``; user-supplied descriptions are JSON
documents naming registry entries:

    "sepia"
    {"filter": "blur", "radius": 3}
    [{"filter": "grayscale"}, {"filter": "contrast", "factor": 1.4}]
"""
import json
import re
from typing import Any, Callable, Dict, List, Union

from PIL import Image as PILImage, ImageEnhance, ImageFilter, ImageOps

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
MAX_RADIUS = 100


class FilterError(Exception):
    """Base class for filter lookup and parsing failures."""


class UnknownFilterError(FilterError):
    """Raised when an identifier is not in the registry."""


class FilterDescriptionError(FilterError):
    """Raised when a filter description cannot be turned into a filter."""


def _rgb(image: PILImage.Image) -> PILImage.Image:
    return image if image.mode == "RGB" else image.convert("RGB")


def _bounded(name: str, value: Any, low: float, high: float) -> float:
    """Numeric parameter check; NaN, infinities and non-numbers fail."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number")
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low:g} and {high:g}")
    return float(value)


class Filter:
    """Base filter; subclasses override ``apply``."""

    name = "filter"

    def apply(self, image: PILImage.Image) -> PILImage.Image:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class NoOp(Filter):
    name = "noop"

    def apply(self, image):
        return image


class Chain(Filter):
    """Applies its filters in order."""

    name = "chain"

    def __init__(self, filters: List[Filter]):
        self.filters = list(filters)

    def apply(self, image):
        for f in self.filters:
            image = f.apply(image)
        return image


class Grayscale(Filter):
    name = "grayscale"

    def apply(self, image):
        return ImageOps.grayscale(image)


class Sepia(Filter):
    name = "sepia"

    def apply(self, image):
        return ImageOps.colorize(ImageOps.grayscale(image), "#2e1d0f", "#f0dcb4")


class Invert(Filter):
    name = "invert"

    def apply(self, image):
        return ImageOps.invert(_rgb(image))


class Mirror(Filter):
    name = "mirror"

    def apply(self, image):
        return ImageOps.mirror(image)


class Flip(Filter):
    name = "flip"

    def apply(self, image):
        return ImageOps.flip(image)


class KernelFilter(Filter):
    """Wraps one of Pillow's fixed convolution kernels."""

    def __init__(self, name: str, kernel: ImageFilter.Filter):
        self.name = name
        self.kernel = kernel

    def apply(self, image):
        return _rgb(image).filter(self.kernel)


class Blur(Filter):
    name = "blur"

    def __init__(self, radius: float = 2.0):
        self.radius = _bounded("radius", radius, 0, MAX_RADIUS)

    def apply(self, image):
        return _rgb(image).filter(ImageFilter.GaussianBlur(self.radius))


class Sharpen(Filter):
    name = "sharpen"

    def __init__(self, radius: float = 2.0, percent: int = 150):
        self.radius = _bounded("radius", radius, 0, MAX_RADIUS)
        self.percent = int(_bounded("percent", percent, 0, 1000))

    def apply(self, image):
        return _rgb(image).filter(ImageFilter.UnsharpMask(self.radius, self.percent))


class Posterize(Filter):
    name = "posterize"

    def __init__(self, bits: int = 3):
        self.bits = int(_bounded("bits", bits, 1, 8))

    def apply(self, image):
        return ImageOps.posterize(_rgb(image), self.bits)


class AutoContrast(Filter):
    name = "autocontrast"

    def __init__(self, cutoff: float = 0):
        self.cutoff = _bounded("cutoff", cutoff, 0, 49)

    def apply(self, image):
        return ImageOps.autocontrast(_rgb(image), cutoff=self.cutoff)


class Enhance(Filter):
    """Brightness, contrast or colour saturation scaled by ``factor``."""

    _ENHANCERS = {
        "brightness": ImageEnhance.Brightness,
        "contrast": ImageEnhance.Contrast,
        "saturation": ImageEnhance.Color,
    }

    def __init__(self, name: str, factor: float = 1.0):
        self.name = name
        self.factor = _bounded("factor", factor, 0, 10)

    def apply(self, image):
        return self._ENHANCERS[self.name](_rgb(image)).enhance(self.factor)


class Pixelate(Filter):
    name = "pixelate"

    def __init__(self, size: int = 8):
        self.size = int(_bounded("size", size, 1, 512))

    def apply(self, image):
        small = image.resize(
            (max(1, image.width // self.size), max(1, image.height // self.size)),
            PILImage.Resampling.NEAREST,
        )
        return small.resize(image.size, PILImage.Resampling.NEAREST)


FilterFactory = Callable[..., Filter]

FILTERS: Dict[str, FilterFactory] = {
    "noop": NoOp,
    "grayscale": Grayscale,
    "sepia": Sepia,
    "invert": Invert,
    "mirror": Mirror,
    "flip": Flip,
    "blur": Blur,
    "sharpen": Sharpen,
    "contour": lambda: KernelFilter("contour", ImageFilter.CONTOUR),
    "edges": lambda: KernelFilter("edges", ImageFilter.FIND_EDGES),
    "emboss": lambda: KernelFilter("emboss", ImageFilter.EMBOSS),
    "posterize": Posterize,
    "autocontrast": AutoContrast,
    "brightness": lambda factor=1.2: Enhance("brightness", factor),
    "contrast": lambda factor=1.4: Enhance("contrast", factor),
    "saturation": lambda factor=1.5: Enhance("saturation", factor),
    "pixelate": Pixelate,
}


def available_filters() -> List[str]:
    return sorted(FILTERS)


def build_filter(identifier: str, **params: Any) -> Filter:
    """Instantiate a registered filter.

    Matching is case-insensitive and a dotted identifier such as
    ``filters.Sepia`` resolves by its last segment.
    """
    key = identifier.strip().rsplit(".", 1)[-1].lower()
    factory = FILTERS.get(key)
    if factory is None:
        raise UnknownFilterError(f"unknown filter {identifier!r}")
    try:
        return factory(**params)
    except (TypeError, ValueError) as exc:
        raise FilterDescriptionError(f"bad parameters for {key}: {exc}") from exc


def _from_node(node: Any) -> Filter:
    if isinstance(node, str):
        return build_filter(node)
    if isinstance(node, list):
        if not node:
            return NoOp()
        filters = [_from_node(item) for item in node]
        return filters[0] if len(filters) == 1 else Chain(filters)
    if isinstance(node, dict):
        params = dict(node)
        name = params.pop("filter", None)
        if not isinstance(name, str):
            raise FilterDescriptionError("filter object needs a 'filter' name")
        return build_filter(name, **params)
    raise FilterDescriptionError(f"unsupported description node {type(node).__name__}")


def parse_description(source: Union[bytes, str]) -> Filter:
    """Parse a filter description document into a filter."""
    try:
        text = source.decode("utf-8") if isinstance(source, bytes) else source
    except UnicodeDecodeError as exc:
        raise FilterDescriptionError("description is not UTF-8 text") from exc
    text = text.strip()
    if not text:
        raise FilterDescriptionError("empty description")
    try:
        node = json.loads(text)
    except json.JSONDecodeError as exc:
        if _NAME_RE.match(text):
            node = text
        else:
            raise FilterDescriptionError(f"invalid description: {exc}") from exc
    return _from_node(node)
