"""
Format-specific drawing of one render job onto its template.
"""

# Standard Library
import functools
import io
import logging
import pathlib

# PIP3 modules
import PIL.Image
import PIL.ImageDraw
import PIL.ImageFont
import pypdf
import reportlab.pdfgen.canvas

# local repo modules
import bulk_text_render as btr
import bulk_text_render.config
import bulk_text_render.fonts


RenderJob = btr.config.RenderJob
FontResolver = btr.fonts.FontResolver
FontHandle = btr.fonts.FontHandle

TEMPLATE_FORMATS = {
	"pdf": "PDF",
	"png": "PNG",
	"jpg": "JPEG",
	"jpeg": "JPEG",
}

logger = logging.getLogger(__name__)


#============================================
def template_format(path: pathlib.Path) -> str:
	"""
	Look up the output format for a template file.

	Args:
		path: Template path.

	Returns:
		"PDF", "PNG" or "JPEG".
	"""
	extension = pathlib.Path(path).suffix.lower().lstrip(".")
	if extension not in TEMPLATE_FORMATS:
		raise ValueError(f"Unsupported template format. Use PDF, PNG, JPG, or JPEG: {path}")
	return TEMPLATE_FORMATS[extension]


#============================================
def compute_align_offset(text_width: float, alignment: str) -> float:
	"""
	Compute the x offset that anchors text at the requested alignment.

	Args:
		text_width: Rendered text width.
		alignment: LEFT, CENTER or RIGHT.

	Returns:
		Offset to add to the anchor x.
	"""
	if alignment == "CENTER":
		return -text_width / 2.0
	if alignment == "RIGHT":
		return -text_width
	return 0.0


#============================================
def build_text_overlay(
	job: RenderJob,
	page_width: float,
	page_height: float,
	resolver: FontResolver,
) -> bytes:
	"""
	Draw the job text on a transparent single-page PDF.

	The job y coordinate uses a top-left origin and is flipped into PDF
	space here.

	Args:
		job: Render job.
		page_width: Page width in points.
		page_height: Page height in points.
		resolver: Font resolver.

	Returns:
		PDF bytes.
	"""
	style = job.style
	handle = resolver.resolve(style.font_name, "pdf", style.font_style)
	buffer = io.BytesIO()
	pdf = reportlab.pdfgen.canvas.Canvas(buffer, pagesize=(page_width, page_height))
	pdf.setFont(handle.name, style.font_size)
	red, green, blue = style.color
	pdf.setFillColorRGB(red / 255.0, green / 255.0, blue / 255.0)
	text_width = pdf.stringWidth(job.text, handle.name, style.font_size)
	text_x = style.x + compute_align_offset(text_width, style.alignment)
	text_y = page_height - style.y
	pdf.drawString(text_x, text_y, job.text)
	pdf.save()
	return buffer.getvalue()


#============================================
def render_pdf_job(job: RenderJob, resolver: FontResolver) -> None:
	"""
	Stamp the job text onto the first page of a PDF template.

	Args:
		job: Render job.
		resolver: Font resolver.
	"""
	reader = pypdf.PdfReader(str(job.template_path))
	if not reader.pages:
		raise ValueError(f"Template PDF has no pages: {job.template_path}")
	writer = pypdf.PdfWriter()
	for index, page in enumerate(reader.pages):
		if index == 0:
			page_width = float(page.mediabox.width)
			page_height = float(page.mediabox.height)
			overlay = build_text_overlay(job, page_width, page_height, resolver)
			page.merge_page(pypdf.PdfReader(io.BytesIO(overlay)).pages[0])
		writer.add_page(page)
	with pathlib.Path(job.output_path).open("wb") as handle:
		writer.write(handle)
	logger.debug("Rendered PDF: %s", job.output_path)


#============================================
def prepare_image(image: PIL.Image.Image, image_format: str) -> PIL.Image.Image:
	"""
	Convert a template image into a drawable mode for the output format.

	JPEG has no alpha channel, so transparent areas become white.

	Args:
		image: Loaded template.
		image_format: "PNG" or "JPEG".

	Returns:
		New image in RGB or RGBA mode.
	"""
	has_alpha = image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info)
	if image_format == "JPEG":
		if not has_alpha:
			return image.convert("RGB")
		rgba = image.convert("RGBA")
		background = PIL.Image.new("RGB", rgba.size, (255, 255, 255))
		background.paste(rgba, mask=rgba.getchannel("A"))
		return background
	if has_alpha:
		return image.convert("RGBA")
	return image.convert("RGB")


#============================================
def image_font_at_size(handle: FontHandle, font_size: float):
	"""
	Get a Pillow font for a resolved handle at the requested size.

	Args:
		handle: Handle from the "image" backend.
		font_size: Size in pixels.

	Returns:
		Pillow font object.
	"""
	size = max(1, int(round(font_size)))
	if isinstance(handle.font, PIL.ImageFont.FreeTypeFont):
		return handle.font.font_variant(size=size)
	return PIL.ImageFont.load_default(size=size)


#============================================
def render_image_job(job: RenderJob, resolver: FontResolver, image_format: str) -> None:
	"""
	Draw the job text onto a PNG or JPEG template.

	Args:
		job: Render job.
		resolver: Font resolver.
		image_format: "PNG" or "JPEG".
	"""
	style = job.style
	with PIL.Image.open(job.template_path) as template:
		template.load()
		image = prepare_image(template, image_format)

	handle = resolver.resolve(style.font_name, "image", style.font_style)
	font = image_font_at_size(handle, style.font_size)
	draw = PIL.ImageDraw.Draw(image)
	text_width = draw.textlength(job.text, font=font)
	text_x = style.x + compute_align_offset(text_width, style.alignment)
	if isinstance(font, PIL.ImageFont.FreeTypeFont):
		# y is the text baseline
		draw.text((text_x, style.y), job.text, font=font, fill=style.color, anchor="ls")
	else:
		draw.text((text_x, style.y - style.font_size), job.text, font=font, fill=style.color)
	image.save(job.output_path, format=image_format)
	logger.debug("Rendered %s: %s", image_format, job.output_path)


#============================================
def select_renderer(template_path: pathlib.Path, resolver: FontResolver):
	"""
	Pick the render callback for a template.

	Args:
		template_path: Template file.
		resolver: Font resolver shared by all jobs.

	Returns:
		Callable taking one RenderJob.
	"""
	output_format = template_format(template_path)
	if output_format == "PDF":
		return functools.partial(render_pdf_job, resolver=resolver)
	return functools.partial(render_image_job, resolver=resolver, image_format=output_format)
