import pathlib

import fitz
import PIL.Image
import pypdf
import pytest
import reportlab.pdfgen.canvas

import bulk_text_render.config
import bulk_text_render.fonts
import bulk_text_render.render


render = bulk_text_render.render
RenderJob = bulk_text_render.config.RenderJob
StyleConfig = bulk_text_render.config.StyleConfig

DPI = 150
INK_THRESHOLD = 200


#============================================
def make_pdf_template(path: pathlib.Path, pages: int = 1) -> pathlib.Path:
	"""
	Write a blank landscape PDF template.

	Args:
		path: Output path.
		pages: Page count.

	Returns:
		Template path.
	"""
	pdf = reportlab.pdfgen.canvas.Canvas(str(path), pagesize=(300, 150))
	for _ in range(pages):
		pdf.showPage()
	pdf.save()
	return path


#============================================
def make_resolver(tmp_path: pathlib.Path) -> bulk_text_render.fonts.FontResolver:
	catalog = bulk_text_render.fonts.FontCatalog(directories=[tmp_path])
	return bulk_text_render.fonts.FontResolver(catalog=catalog)


#============================================
def count_dark_pixels(image: PIL.Image.Image) -> int:
	"""
	Count pixels darker than the ink threshold.

	Args:
		image: Any PIL image.

	Returns:
		Number of dark pixels.
	"""
	gray = image.convert("L")
	return sum(1 for value in gray.getdata() if value < INK_THRESHOLD)


#============================================
def render_pdf_first_page(path: pathlib.Path) -> PIL.Image.Image:
	document = fitz.open(path)
	page = document[0]
	scale = DPI / 72.0
	pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
	image = PIL.Image.frombytes("RGB", [pixmap.width, pixmap.height], pixmap.samples)
	document.close()
	return image


#============================================
def test_pdf_job_stamps_text_on_first_page(tmp_path: pathlib.Path) -> None:
	"""
	The text lands on page one and later pages are kept untouched.
	"""
	template = make_pdf_template(tmp_path / "certificate.pdf", pages=2)
	output = tmp_path / "out.pdf"
	style = StyleConfig(x=150.0, y=80.0, alignment="CENTER", font_name="Helvetica", font_size=20.0)
	job = RenderJob(text="Jane Doe", style=style, template_path=template, output_path=output)
	render.render_pdf_job(job, make_resolver(tmp_path))

	reader = pypdf.PdfReader(str(output))
	assert len(reader.pages) == 2
	assert "Jane Doe" in reader.pages[0].extract_text()
	assert "Jane Doe" not in (reader.pages[1].extract_text() or "")
	assert count_dark_pixels(render_pdf_first_page(output)) > 0


#============================================
def test_pdf_text_sits_near_requested_position(tmp_path: pathlib.Path) -> None:
	"""
	Top-left y coordinates put the text in the upper half of the page.
	"""
	template = make_pdf_template(tmp_path / "badge.pdf")
	output = tmp_path / "badge-out.pdf"
	style = StyleConfig(x=20.0, y=40.0, font_name="Courier", font_size=24.0)
	job = RenderJob(text="TOP", style=style, template_path=template, output_path=output)
	render.render_pdf_job(job, make_resolver(tmp_path))

	image = render_pdf_first_page(output)
	gray = image.convert("L")
	width, height = gray.size
	top_half = gray.crop((0, 0, width, height // 2))
	bottom_half = gray.crop((0, height // 2, width, height))
	assert count_dark_pixels(top_half) > 0
	assert count_dark_pixels(bottom_half) == 0


#============================================
def test_png_job_keeps_alpha(tmp_path: pathlib.Path) -> None:
	template = tmp_path / "badge.png"
	PIL.Image.new("RGBA", (240, 80), (255, 255, 255, 0)).save(template)
	output = tmp_path / "badge-out.png"
	style = StyleConfig(x=10.0, y=50.0, font_name="Helvetica", font_size=24.0, color=(200, 0, 0))
	job = RenderJob(text="Jane", style=style, template_path=template, output_path=output)
	render.render_image_job(job, make_resolver(tmp_path), "PNG")

	with PIL.Image.open(output) as result:
		assert result.mode == "RGBA"
		assert result.size == (240, 80)
		alpha = result.getchannel("A")
		assert alpha.getbbox() is not None


#============================================
def test_jpeg_job_draws_text(tmp_path: pathlib.Path) -> None:
	template = tmp_path / "card.jpg"
	PIL.Image.new("RGB", (240, 80), (255, 255, 255)).save(template, format="JPEG")
	output = tmp_path / "card-out.jpg"
	style = StyleConfig(x=230.0, y=50.0, alignment="RIGHT", font_name="Times", font_size=24.0)
	job = RenderJob(text="Jane", style=style, template_path=template, output_path=output)
	render.render_image_job(job, make_resolver(tmp_path), "JPEG")

	with PIL.Image.open(output) as result:
		assert result.format == "JPEG"
		assert result.mode == "RGB"
		assert count_dark_pixels(result) > 0


#============================================
def test_prepare_image_flattens_alpha_for_jpeg() -> None:
	image = PIL.Image.new("RGBA", (4, 4), (0, 0, 0, 0))
	flattened = render.prepare_image(image, "JPEG")
	assert flattened.mode == "RGB"
	assert flattened.getpixel((0, 0)) == (255, 255, 255)
	assert render.prepare_image(PIL.Image.new("L", (4, 4)), "PNG").mode == "RGB"


#============================================
def test_compute_align_offset() -> None:
	assert render.compute_align_offset(100.0, "LEFT") == 0.0
	assert render.compute_align_offset(100.0, "CENTER") == -50.0
	assert render.compute_align_offset(100.0, "RIGHT") == -100.0


#============================================
def test_template_format() -> None:
	assert render.template_format(pathlib.Path("a.PDF")) == "PDF"
	assert render.template_format(pathlib.Path("a.jpeg")) == "JPEG"
	assert render.template_format(pathlib.Path("a.jpg")) == "JPEG"
	with pytest.raises(ValueError):
		render.template_format(pathlib.Path("a.gif"))


#============================================
def test_select_renderer_binds_format(tmp_path: pathlib.Path) -> None:
	resolver = make_resolver(tmp_path)
	pdf_renderer = render.select_renderer(pathlib.Path("t.pdf"), resolver)
	assert pdf_renderer.func is render.render_pdf_job
	png_renderer = render.select_renderer(pathlib.Path("t.png"), resolver)
	assert png_renderer.func is render.render_image_job
	assert png_renderer.keywords["image_format"] == "PNG"
	with pytest.raises(ValueError):
		render.select_renderer(pathlib.Path("t.bmp"), resolver)


#============================================
def test_missing_template_raises(tmp_path: pathlib.Path) -> None:
	style = StyleConfig(x=1.0, y=1.0)
	job = RenderJob(
		text="x",
		style=style,
		template_path=tmp_path / "absent.pdf",
		output_path=tmp_path / "out.pdf",
	)
	with pytest.raises(FileNotFoundError):
		render.render_pdf_job(job, make_resolver(tmp_path))
