"""
Font resolution for the PDF (ReportLab) and raster (Pillow) backends.

A requested font name is resolved through an ordered chain of tiers:

1. built-in alias table (no filesystem access for PDF output; raster
   output looks for an installed face of the family),
2. registered font names (backend registry plus the scanned system fonts),
3. font files discovered under the platform font directories,
4. the backend's serif default.

Every tier returns an Attempt so that moving on to the next tier is an
explicit branch. Resolution never raises for a missing font; the caller
always gets a usable FontHandle.
"""

# Standard Library
import dataclasses
import logging
import os
import pathlib
import sys
import threading

# PIP3 modules
import PIL.ImageFont
import reportlab.pdfbase.pdfmetrics
import reportlab.pdfbase.ttfonts
import reportlab.rl_config

# local repo modules
import bulk_text_render as btr
import bulk_text_render.config


FONT_STYLES = btr.config.FONT_STYLES
FontInfo = btr.config.FontInfo

FONT_EXTENSIONS = (".ttf", ".otf", ".ttc")
COLLECTION_EXTENSIONS = (".ttc",)
FONT_DIR_MAX_DEPTH = 3
COLLECTION_INDEX_LIMIT = 10
PROBE_FONT_SIZE = 12

EMBED_FULL = "full"
EMBED_NONE = "none"
EMBED_SUBSET = "subset"

SOURCE_BUILTIN = "builtin"
SOURCE_REGISTRY = "registry"
SOURCE_FILE = "file"
SOURCE_FALLBACK = "fallback"

BUILTIN_ALIASES = {
	"helvetica": "sans",
	"sans-serif": "sans",
	"sansserif": "sans",
	"sans": "sans",
	"times": "serif",
	"times new roman": "serif",
	"times-roman": "serif",
	"serif": "serif",
	"courier": "mono",
	"monospace": "mono",
	"mono": "mono",
}
BUILTIN_DISPLAY_NAMES = ("Courier", "Helvetica", "Times New Roman")
DEFAULT_FAMILY = "serif"

# style order follows FONT_STYLES: NORMAL, BOLD, ITALIC, BOLD_ITALIC
PDF_BUILTIN_FONTS = {
	"sans": ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"),
	"serif": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
	"mono": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
}
STYLE_SUFFIXES = {
	"NORMAL": "",
	"BOLD": "Bold",
	"ITALIC": "Italic",
	"BOLD_ITALIC": "Bold Italic",
}
# installed faces standing in for the built-in families on raster output
RASTER_FAMILY_FACES = {
	"sans": ("DejaVu Sans", "Liberation Sans", "Arial", "Helvetica", "Bitstream Vera Sans"),
	"serif": ("DejaVu Serif", "Liberation Serif", "Times New Roman", "Times", "Bitstream Vera Serif"),
	"mono": ("DejaVu Sans Mono", "Liberation Mono", "Courier New", "Courier", "Bitstream Vera Sans Mono"),
}
RASTER_STYLE_SUFFIXES = {
	"NORMAL": ("",),
	"BOLD": ("Bold",),
	"ITALIC": ("Italic", "Oblique"),
	"BOLD_ITALIC": ("Bold Italic", "Bold Oblique"),
}

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class FontHandle:
	name: str
	backend: str
	source: str
	path: str | None = None
	index: int = 0
	embedding: str = EMBED_NONE
	style: str = "NORMAL"
	font: object = dataclasses.field(default=None, compare=False, repr=False)


@dataclasses.dataclass(frozen=True)
class FontFileRef:
	name: str
	path: pathlib.Path
	index: int = 0


@dataclasses.dataclass(frozen=True)
class Attempt:
	"""
	Tagged result of one resolution step.

	handle is set when the step produced a usable font. denied marks an
	embedding-rights refusal, stop marks a collection index past the end.
	"""
	handle: FontHandle | None = None
	reason: str = ""
	denied: bool = False
	stop: bool = False

	@property
	def found(self) -> bool:
		return self.handle is not None


#============================================
def found(handle: FontHandle) -> Attempt:
	return Attempt(handle=handle)


#============================================
def skip(reason: str, denied: bool = False, stop: bool = False) -> Attempt:
	return Attempt(reason=reason, denied=denied, stop=stop)


#============================================
def normalize_font_key(name: str) -> str:
	"""
	Normalize a font name to lowercase alphanumerics.

	Args:
		name: Font name or file stem.

	Returns:
		Normalized key.
	"""
	return "".join(char for char in name.lower() if char.isalnum())


#============================================
def is_collection(path: pathlib.Path) -> bool:
	return path.suffix.lower() in COLLECTION_EXTENSIONS


#============================================
def find_matching_font(font_name: str, names: list[str]) -> str | None:
	"""
	Find a registered font name for a requested name.

	Exact case-insensitive matches win; otherwise the first name that
	contains the request, or is contained by it, is returned. Short names
	can therefore match unrelated families.

	Args:
		font_name: Requested font name.
		names: Registered font names.

	Returns:
		Matching registered name or None.
	"""
	search = font_name.strip().lower()
	if not search:
		return None
	for name in names:
		if name.lower() == search:
			return name
	for name in names:
		registered = name.lower()
		if not registered:
			continue
		if search in registered or registered in search:
			return name
	return None


#============================================
def platform_font_directories() -> list[pathlib.Path]:
	"""
	List user and system font directories for the running platform.

	Returns:
		Candidate directories, existing or not.
	"""
	home = pathlib.Path.home()
	if sys.platform == "darwin":
		return [
			home / "Library" / "Fonts",
			pathlib.Path("/Library/Fonts"),
			pathlib.Path("/System/Library/Fonts"),
		]
	if sys.platform.startswith("win"):
		windir = pathlib.Path(os.environ.get("WINDIR", "C:\\Windows"))
		return [
			windir / "Fonts",
			home / "AppData" / "Local" / "Microsoft" / "Windows" / "Fonts",
		]
	return [
		home / ".fonts",
		home / ".local" / "share" / "fonts",
		pathlib.Path("/usr/share/fonts"),
		pathlib.Path("/usr/local/share/fonts"),
	]


class FontCatalog:
	"""
	Font files found under a set of directories.

	The directory walk runs once per catalog; walk_count records how many
	walks actually touched the filesystem.
	"""

	def __init__(
		self,
		directories: list[pathlib.Path] | None = None,
		max_depth: int = FONT_DIR_MAX_DEPTH,
	) -> None:
		self._directories = directories
		self.max_depth = max_depth
		self.walk_count = 0
		self._files: list[pathlib.Path] | None = None
		self._lock = threading.Lock()

	def directories(self) -> list[pathlib.Path]:
		directories = self._directories
		if directories is None:
			directories = platform_font_directories()
		return [pathlib.Path(directory) for directory in directories if pathlib.Path(directory).is_dir()]

	def font_files(self) -> list[pathlib.Path]:
		files = self._files
		if files is not None:
			return files
		with self._lock:
			if self._files is None:
				self._files = self._walk()
			return self._files

	def _walk(self) -> list[pathlib.Path]:
		self.walk_count += 1
		files: list[pathlib.Path] = []
		for directory in self.directories():
			for root, dirnames, filenames in os.walk(directory):
				depth = len(pathlib.Path(root).relative_to(directory).parts)
				if depth >= self.max_depth - 1:
					dirnames[:] = []
				dirnames.sort()
				for filename in sorted(filenames):
					if filename.lower().endswith(FONT_EXTENSIONS):
						files.append(pathlib.Path(root) / filename)
		logger.debug("Font catalog found %d files in %d directories", len(files), len(self.directories()))
		return files

	def find_candidates(self, normalized_name: str) -> list[pathlib.Path]:
		"""
		Find font files whose stem matches a normalized font name.

		Args:
			normalized_name: Output of normalize_font_key.

		Returns:
			Matching paths, exact stem matches first.
		"""
		if not normalized_name:
			return []
		exact: list[pathlib.Path] = []
		partial: list[pathlib.Path] = []
		for path in self.font_files():
			stem = normalize_font_key(path.stem)
			if not stem:
				continue
			if stem == normalized_name:
				exact.append(path)
			elif normalized_name in stem or stem in normalized_name:
				partial.append(path)
		return exact + partial


class ReportLabBackend:
	"""
	PDF backend: ReportLab standard fonts and registered TrueType fonts.
	"""

	key = "pdf"

	def __init__(self) -> None:
		self._lock = threading.Lock()

	def builtin_queries(self, family: str, style: str) -> list[str]:
		# the standard 14 fonts need no installed face
		return []

	def builtin(self, family: str, style: str) -> FontHandle:
		name = PDF_BUILTIN_FONTS[family][FONT_STYLES.index(style)]
		return FontHandle(name=name, backend=self.key, source=SOURCE_BUILTIN, style=style)

	def registered_names(self) -> list[str]:
		"""
		List the standard 14 fonts, then fonts registered at runtime.

		ReportLab only adds a standard font to its registry once it is
		first used, so the standard names are listed up front.
		"""
		names = list(reportlab.pdfbase.pdfmetrics.standardFonts)
		for name in reportlab.pdfbase.pdfmetrics.getRegisteredFontNames():
			if name not in names:
				names.append(name)
		return names

	def instantiate_registered(self, name: str, ref: FontFileRef | None) -> Attempt:
		if name in self.registered_names():
			handle = FontHandle(name=name, backend=self.key, source=SOURCE_REGISTRY, embedding=EMBED_FULL)
			return found(handle)
		if ref is None:
			return skip(f"'{name}' has no font file")
		attempt = self.load_file(ref.path, ref.index, EMBED_FULL)
		if not attempt.found:
			return attempt
		return found(dataclasses.replace(attempt.handle, source=SOURCE_REGISTRY))

	def load_file(self, path: pathlib.Path, index: int, embedding: str) -> Attempt:
		"""
		Register a TrueType file with ReportLab.

		Args:
			path: Font file.
			index: Subfont index for collections.
			embedding: EMBED_FULL, EMBED_NONE or EMBED_SUBSET.

		Returns:
			Attempt.
		"""
		if embedding == EMBED_NONE:
			return skip("ReportLab always embeds TrueType fonts")
		font_name = path.stem
		if is_collection(path):
			font_name = f"{path.stem}-{index}"
		with self._lock:
			if font_name in reportlab.pdfbase.pdfmetrics.getRegisteredFontNames():
				font = reportlab.pdfbase.pdfmetrics.getFont(font_name)
				return found(self._file_handle(font_name, path, index, embedding, font))
			if embedding == EMBED_SUBSET and path.name not in reportlab.rl_config.allowTTFSubsetting:
				reportlab.rl_config.allowTTFSubsetting.append(path.name)
			try:
				font = reportlab.pdfbase.ttfonts.TTFont(font_name, str(path), subfontIndex=index)
			except Exception as error:
				# malformed files raise assorted parser errors besides TTFError
				return classify_load_error(path, index, error)
			reportlab.pdfbase.pdfmetrics.registerFont(font)
		return found(self._file_handle(font_name, path, index, embedding, font))

	def _file_handle(self, name: str, path: pathlib.Path, index: int, embedding: str, font: object) -> FontHandle:
		return FontHandle(
			name=name,
			backend=self.key,
			source=SOURCE_FILE,
			path=str(path),
			index=index,
			embedding=embedding,
			font=font,
		)


class PillowBackend:
	"""
	Raster backend: Pillow FreeType faces.

	Rasterized text never embeds a font program, so the first loading
	strategy either works or fails for reasons the others cannot fix.
	Built-in families map onto installed faces; Pillow's bundled face is
	only used when none of them is installed.
	"""

	key = "image"

	def builtin_queries(self, family: str, style: str) -> list[str]:
		"""
		List installed face names that can stand in for a built-in family.

		Args:
			family: sans, serif or mono.
			style: One of FONT_STYLES.

		Returns:
			Registry names, most preferred first.
		"""
		queries: list[str] = []
		for face in RASTER_FAMILY_FACES[family]:
			for suffix in RASTER_STYLE_SUFFIXES[style]:
				queries.append(f"{face} {suffix}" if suffix else face)
		return queries

	def builtin(self, family: str, style: str) -> FontHandle:
		font = PIL.ImageFont.load_default(size=PROBE_FONT_SIZE)
		return FontHandle(
			name=f"default-{family}",
			backend=self.key,
			source=SOURCE_BUILTIN,
			style=style,
			font=font,
		)

	def registered_names(self) -> list[str]:
		return []

	def instantiate_registered(self, name: str, ref: FontFileRef | None) -> Attempt:
		if ref is None:
			return skip(f"'{name}' has no font file")
		attempt = self.load_file(ref.path, ref.index, EMBED_FULL)
		if not attempt.found:
			return attempt
		return found(dataclasses.replace(attempt.handle, source=SOURCE_REGISTRY))

	def load_file(self, path: pathlib.Path, index: int, embedding: str) -> Attempt:
		try:
			font = PIL.ImageFont.truetype(str(path), PROBE_FONT_SIZE, index=index)
		except OSError as error:
			# FreeType rejects a face index past the end of a collection
			return skip(f"{path}: {error}", stop=index > 0)
		family, _style = font.getname()
		handle = FontHandle(
			name=family or path.stem,
			backend=self.key,
			source=SOURCE_FILE,
			path=str(path),
			index=index,
			embedding=embedding,
			font=font,
		)
		return found(handle)


#============================================
def classify_load_error(path: pathlib.Path, index: int, error: Exception) -> Attempt:
	"""
	Turn a font loading error into a tagged Attempt.

	Args:
		path: Font file.
		index: Subfont index.
		error: Raised error.

	Returns:
		Attempt marked denied for embedding refusals, stop for bad indices.
	"""
	message = str(error)
	lowered = message.lower()
	reason = f"{path} (index {index}): {message}"
	if "subfontindex" in lowered or "out of range" in lowered:
		return skip(reason, stop=True)
	if "embedding" in lowered or "licensing" in lowered:
		return skip(reason, denied=True)
	return skip(reason)


#============================================
def read_font_names(path: pathlib.Path) -> list[FontFileRef]:
	"""
	Read family/style names from a font file.

	Args:
		path: Font file.

	Returns:
		One FontFileRef per readable face.
	"""
	refs: list[FontFileRef] = []
	indices = range(COLLECTION_INDEX_LIMIT) if is_collection(path) else range(1)
	for index in indices:
		try:
			face = PIL.ImageFont.truetype(str(path), PROBE_FONT_SIZE, index=index)
		except OSError:
			break
		family, style = face.getname()
		if not family:
			continue
		name = family
		if style and style.lower() not in ("regular", "normal", "book", "roman"):
			name = f"{family} {style}"
		refs.append(FontFileRef(name=name, path=path, index=index))
	return refs


class FontResolver:
	"""
	Resolve loosely specified font names into backend font handles.
	"""

	def __init__(
		self,
		catalog: FontCatalog | None = None,
		backends: dict | None = None,
	) -> None:
		self.catalog = catalog if catalog is not None else FontCatalog()
		if backends is None:
			backends = {"pdf": ReportLabBackend(), "image": PillowBackend()}
		self.backends = backends
		self.scan_count = 0
		self._system_fonts: dict[str, FontFileRef] | None = None
		self._scan_lock = threading.Lock()
		self._cache: dict[tuple[str, str, str], FontHandle] = {}

	def resolve(self, font_name: str | None, backend: str = "pdf", style: str = "NORMAL") -> FontHandle:
		"""
		Resolve a font name for a backend.

		Args:
			font_name: Requested font name, may be blank.
			backend: Backend key ("pdf" or "image").
			style: One of FONT_STYLES.

		Returns:
			FontHandle usable by the backend.
		"""
		font_backend = self._backend(backend)
		if style not in FONT_STYLES:
			raise ValueError(f"Invalid font style: {style!r}")
		font_name = (font_name or "").strip()
		key = (font_backend.key, font_name.lower(), style)
		handle = self._cache.get(key)
		if handle is not None:
			return handle
		if not font_name:
			logger.debug("No font specified, using %s default", backend)
			handle = self.default_handle(font_backend, style)
		else:
			handle = self._resolve_uncached(font_backend, font_name, style)
		handle = dataclasses.replace(handle, style=style)
		self._cache[key] = handle
		return handle

	def _backend(self, backend: str):
		if backend not in self.backends:
			raise ValueError(f"Unknown font backend: {backend!r}")
		return self.backends[backend]

	def _resolve_uncached(self, font_backend, font_name: str, style: str) -> FontHandle:
		tiers = (
			("built-in", self.try_builtin),
			("registry", self.try_registry),
			("font files", self.try_font_files),
		)
		for tier_name, tier in tiers:
			attempt = tier(font_backend, font_name, style)
			if attempt.found:
				logger.debug("Font '%s' resolved via %s: %s", font_name, tier_name, attempt.handle.name)
				return attempt.handle
			logger.debug("Font '%s' not resolved via %s: %s", font_name, tier_name, attempt.reason)
		handle = self.default_handle(font_backend, style)
		logger.warning(
			"Font '%s' not available for %s output, falling back to %s",
			font_name,
			font_backend.key,
			handle.name,
		)
		return handle

	def default_handle(self, font_backend, style: str) -> FontHandle:
		"""
		Get the backend's serif default in the requested style.
		"""
		handle = self.builtin_handle(font_backend, DEFAULT_FAMILY, style)
		return dataclasses.replace(handle, source=SOURCE_FALLBACK)

	def builtin_handle(self, font_backend, family: str, style: str) -> FontHandle:
		"""
		Get a built-in family, preferring an installed face when the backend
		asks for one.

		Args:
			font_backend: Backend.
			family: sans, serif or mono.
			style: One of FONT_STYLES.

		Returns:
			FontHandle with source SOURCE_BUILTIN.
		"""
		queries = font_backend.builtin_queries(family, style)
		if queries:
			system_fonts = self.system_fonts()
			for query in queries:
				ref = system_fonts.get(query.lower())
				if ref is None:
					continue
				attempt = font_backend.load_file(ref.path, ref.index, EMBED_FULL)
				if attempt.found:
					return dataclasses.replace(attempt.handle, source=SOURCE_BUILTIN)
				logger.debug("Installed face for %s unusable: %s", family, attempt.reason)
			logger.debug("No installed %s %s face, using bundled default", family, style)
		return font_backend.builtin(family, style)

	def try_builtin(self, font_backend, font_name: str, style: str) -> Attempt:
		family = BUILTIN_ALIASES.get(font_name.strip().lower())
		if family is None:
			return skip("not a built-in alias")
		return found(self.builtin_handle(font_backend, family, style))

	def try_registry(self, font_backend, font_name: str, style: str) -> Attempt:
		system_fonts = self.system_fonts()
		names = font_backend.registered_names() + [ref.name for ref in system_fonts.values()]
		for query in style_queries(font_name, style):
			match = find_matching_font(query, names)
			if match is None:
				continue
			attempt = font_backend.instantiate_registered(match, system_fonts.get(match.lower()))
			if attempt.found:
				return attempt
			logger.debug("Registered font '%s' unusable: %s", match, attempt.reason)
		return skip(f"no usable registered font matches '{font_name}'")

	def try_font_files(self, font_backend, font_name: str, style: str) -> Attempt:
		for query in style_queries(font_name, style):
			for path in self.catalog.find_candidates(normalize_font_key(query)):
				attempt = self.load_candidate(font_backend, path)
				if attempt.found:
					return attempt
				logger.debug("Font file rejected: %s", attempt.reason)
		return skip(f"no loadable font file matches '{font_name}'")

	def load_candidate(self, font_backend, path: pathlib.Path) -> Attempt:
		"""
		Load a candidate file, probing collection indices.

		Args:
			font_backend: Backend to load with.
			path: Font file.

		Returns:
			Attempt.
		"""
		indices = range(COLLECTION_INDEX_LIMIT) if is_collection(path) else range(1)
		attempt = skip(f"{path}: no faces tried")
		for index in indices:
			attempt = self.load_with_strategies(font_backend, path, index)
			if attempt.found or attempt.stop:
				break
		return attempt

	def load_with_strategies(self, font_backend, path: pathlib.Path, index: int) -> Attempt:
		"""
		Load one face trying full, then no, then subset embedding.

		The fallback strategies only run after an embedding-rights refusal.
		"""
		attempt = font_backend.load_file(path, index, EMBED_FULL)
		if attempt.found or not attempt.denied:
			return attempt
		logger.debug("Embedding refused for %s: %s", path, attempt.reason)
		attempt = font_backend.load_file(path, index, EMBED_NONE)
		if attempt.found:
			logger.info("Font %s loaded without embedding; viewers need it installed", path.name)
			return attempt
		attempt = font_backend.load_file(path, index, EMBED_SUBSET)
		if attempt.found:
			logger.info("Font %s loaded with subset embedding", path.name)
		return attempt

	def system_fonts(self) -> dict[str, FontFileRef]:
		"""
		Return the system font registry, scanning it on first use.

		Returns:
			Registered fonts keyed by lowercased name.
		"""
		registry = self._system_fonts
		if registry is not None:
			return registry
		with self._scan_lock:
			if self._system_fonts is None:
				logger.info("Registering system fonts...")
				self._system_fonts = self._scan_system_fonts()
				self.scan_count += 1
				logger.debug("System fonts registered: %d", len(self._system_fonts))
			return self._system_fonts

	def _scan_system_fonts(self) -> dict[str, FontFileRef]:
		registry: dict[str, FontFileRef] = {}
		for path in self.catalog.font_files():
			for ref in read_font_names(path):
				registry.setdefault(ref.name.lower(), ref)
		return registry

	def available_fonts(self, backend: str = "pdf") -> list[FontInfo]:
		"""
		List built-in and system fonts for a backend.

		Args:
			backend: Backend key.

		Returns:
			Sorted FontInfo list, built-ins first.
		"""
		font_backend = self._backend(backend)
		fonts = [btr.config.make_font_info(name, "BUILT_IN") for name in BUILTIN_DISPLAY_NAMES]
		seen = {name.lower() for name in BUILTIN_DISPLAY_NAMES}
		seen.update(BUILTIN_ALIASES)
		builtin_names = {name.lower() for names in PDF_BUILTIN_FONTS.values() for name in names}
		names = font_backend.registered_names() + [ref.name for ref in self.system_fonts().values()]
		for name in names:
			lowered = name.lower()
			if lowered in seen or lowered in builtin_names:
				continue
			seen.add(lowered)
			fonts.append(btr.config.make_font_info(name, "SYSTEM"))
		return sorted(fonts)

	def is_font_available(self, font_name: str | None, backend: str = "pdf") -> bool:
		if font_name is None or not font_name.strip():
			return False
		if BUILTIN_ALIASES.get(font_name.strip().lower()) is not None:
			return True
		font_backend = self._backend(backend)
		names = font_backend.registered_names() + [ref.name for ref in self.system_fonts().values()]
		return find_matching_font(font_name, names) is not None


#============================================
def style_queries(font_name: str, style: str) -> list[str]:
	"""
	Build the names to search for a styled request.

	Args:
		font_name: Requested family name.
		style: One of FONT_STYLES.

	Returns:
		Styled name first, then the plain name.
	"""
	suffix = STYLE_SUFFIXES[style]
	if not suffix:
		return [font_name]
	return [f"{font_name} {suffix}", font_name]
