"""
Shared configuration, constants, and value types.
"""

# Standard Library
import dataclasses
import pathlib


POINTS_PER_INCH = 72.0
MM_PER_INCH = 25.4

DEFAULT_FONT = "Times New Roman"
DEFAULT_FONT_SIZE = 12.0
DEFAULT_COLOR = (0, 0, 0)
DEFAULT_ALIGNMENT = "LEFT"
DEFAULT_FONT_STYLE = "NORMAL"
DEFAULT_OUTPUT_DIR = "./output"
DEFAULT_SEQUENTIAL_THRESHOLD = 10
DEFAULT_BATCH_TIMEOUT = 3600.0
PROGRESS_BAR_WIDTH = 20

ALIGNMENTS = ("LEFT", "CENTER", "RIGHT")
FONT_STYLES = ("NORMAL", "BOLD", "ITALIC", "BOLD_ITALIC")
UNIT_SCALES = {
	"PX": 1.0,
	"MM": POINTS_PER_INCH / MM_PER_INCH,
}
FONT_CATEGORIES = ("BUILT_IN", "SYSTEM")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_PARTIAL = 3


@dataclasses.dataclass(frozen=True)
class StyleConfig:
	x: float
	y: float
	alignment: str = DEFAULT_ALIGNMENT
	font_name: str | None = DEFAULT_FONT
	font_size: float = DEFAULT_FONT_SIZE
	color: tuple[int, int, int] = DEFAULT_COLOR
	font_style: str = DEFAULT_FONT_STYLE

	def __post_init__(self) -> None:
		if self.alignment not in ALIGNMENTS:
			raise ValueError(f"Invalid alignment: {self.alignment!r}")
		if self.font_style not in FONT_STYLES:
			raise ValueError(f"Invalid font style: {self.font_style!r}")
		if not self.font_size > 0:
			raise ValueError(f"Font size must be positive: {self.font_size}")
		if len(self.color) != 3:
			raise ValueError(f"Color must be an RGB triple: {self.color!r}")
		for component in self.color:
			if not 0 <= component <= 255:
				raise ValueError(f"Color component out of range: {self.color!r}")


@dataclasses.dataclass(frozen=True)
class RenderJob:
	text: str
	style: StyleConfig
	template_path: pathlib.Path
	output_path: pathlib.Path


@dataclasses.dataclass(frozen=True)
class JobFailure:
	text: str
	error: str


@dataclasses.dataclass(frozen=True)
class BatchOutcome:
	success_count: int
	failures: tuple[JobFailure, ...] = ()
	timed_out: bool = False

	@property
	def failure_count(self) -> int:
		return len(self.failures)

	@property
	def total(self) -> int:
		return self.success_count + self.failure_count

	@property
	def status(self) -> str:
		"""
		Summarize the batch as empty, success, partial, or failed.
		"""
		if self.total == 0:
			return "empty"
		if not self.failures:
			return "success"
		if self.success_count == 0:
			return "failed"
		return "partial"

	def failed_texts(self) -> list[str]:
		return [failure.text for failure in self.failures]


@dataclasses.dataclass(frozen=True, order=True)
class FontInfo:
	category: str
	sort_key: str = dataclasses.field(repr=False)
	name: str = dataclasses.field(compare=False)


#============================================
def make_font_info(name: str, category: str) -> FontInfo:
	"""
	Build a sortable FontInfo entry.

	Built-in fonts sort before system fonts, then by name ignoring case.

	Args:
		name: Font name.
		category: BUILT_IN or SYSTEM.

	Returns:
		FontInfo.
	"""
	if category not in FONT_CATEGORIES:
		raise ValueError(f"Invalid font category: {category!r}")
	return FontInfo(category=category, sort_key=name.lower(), name=name)


#============================================
def to_native_units(value: float, unit: str) -> float:
	"""
	Convert a coordinate into the renderer's native units.

	Args:
		value: Coordinate value.
		unit: PX or MM (case-insensitive).

	Returns:
		Value in points/pixels.
	"""
	key = unit.strip().upper()
	if key not in UNIT_SCALES:
		raise ValueError(f"Invalid measurement unit: {unit!r}. Valid values: px, mm")
	return value * UNIT_SCALES[key]


#============================================
def parse_alignment(value: str | None) -> str:
	"""
	Parse an alignment name case-insensitively.

	Args:
		value: Alignment text, blank means LEFT.

	Returns:
		Alignment constant.
	"""
	if value is None or not value.strip():
		return DEFAULT_ALIGNMENT
	normalized = value.strip().upper()
	if normalized not in ALIGNMENTS:
		raise ValueError(f"Invalid alignment: {value!r}. Valid values: left, center, right")
	return normalized


#============================================
def parse_hex_color(value: str | None) -> tuple[int, int, int]:
	"""
	Parse a hex color string into an RGB triple.

	Args:
		value: Color string like "#AABBCC", "#ABC" or "AABBCC".

	Returns:
		Tuple of (r, g, b) in 0-255 range.
	"""
	if not value:
		return DEFAULT_COLOR
	digits = value[1:] if value.startswith("#") else value
	if len(digits) == 3:
		digits = "".join(char * 2 for char in digits)
	valid = len(digits) == 6 and all(char in "0123456789abcdefABCDEF" for char in digits)
	if not valid:
		raise ValueError(f"Invalid hex color format: {value!r}. Expected #RRGGBB or #RGB")
	red = int(digits[0:2], 16)
	green = int(digits[2:4], 16)
	blue = int(digits[4:6], 16)
	return (red, green, blue)


#============================================
def font_style_from_flags(bold: bool, italic: bool) -> str:
	"""
	Map bold/italic flags onto a font style constant.
	"""
	if bold and italic:
		return "BOLD_ITALIC"
	if bold:
		return "BOLD"
	if italic:
		return "ITALIC"
	return "NORMAL"
