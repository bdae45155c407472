import pathlib

import pypdf
import reportlab.pdfgen.canvas

import bulk_text_render.cli
import bulk_text_render.config
import bulk_text_render.render


cli = bulk_text_render.cli
BatchOutcome = bulk_text_render.config.BatchOutcome
JobFailure = bulk_text_render.config.JobFailure


#============================================
def write_inputs(tmp_path: pathlib.Path, rows: str) -> tuple[pathlib.Path, pathlib.Path]:
	"""
	Write a one-page PDF template and a CSV file.

	Args:
		tmp_path: Working directory.
		rows: CSV text.

	Returns:
		Template path and CSV path.
	"""
	template = tmp_path / "award.pdf"
	pdf = reportlab.pdfgen.canvas.Canvas(str(template), pagesize=(400, 200))
	pdf.showPage()
	pdf.save()
	csv_path = tmp_path / "names.csv"
	csv_path.write_text(rows, encoding="utf-8")
	return template, csv_path


#============================================
def base_argv(template: pathlib.Path, csv_path: pathlib.Path, output_dir: pathlib.Path) -> list[str]:
	return [
		"-t", str(template),
		"-c", str(csv_path),
		"-o", str(output_dir),
		"-x", "200",
		"-y", "100",
		"-a", "center",
		"-f", "Helvetica",
	]


#============================================
def test_pipeline_renders_every_row(tmp_path: pathlib.Path, capsys) -> None:
	"""
	End to end: one stamped PDF per CSV row.
	"""
	template, csv_path = write_inputs(tmp_path, "Jane Doe,Dr.,PhD\nBob Stone\n\nAna Lee\n")
	output_dir = tmp_path / "out"
	args = cli.parse_args(base_argv(template, csv_path, output_dir) + ["--prefix", "2024"])
	status = cli.run_pipeline(args)
	assert status == cli.EXIT_OK

	outputs = sorted(path.name for path in output_dir.iterdir())
	assert outputs == [
		"2024-award-Ana_Lee.pdf",
		"2024-award-Bob_Stone.pdf",
		"2024-award-Jane_Doe.pdf",
	]
	reader = pypdf.PdfReader(str(output_dir / "2024-award-Jane_Doe.pdf"))
	assert "Dr. Jane Doe PhD" in reader.pages[0].extract_text()
	captured = capsys.readouterr()
	assert "Rendered: 3/3" in captured.out
	assert "sequential mode" in captured.out


#============================================
def test_pipeline_parallel_mode_with_millimeters(tmp_path: pathlib.Path, capsys) -> None:
	template, csv_path = write_inputs(tmp_path, "A\nB\nC\nD\n")
	output_dir = tmp_path / "out"
	argv = base_argv(template, csv_path, output_dir)
	argv += ["-u", "mm", "-x", "70", "-y", "35", "-p", "2", "--sequential-threshold", "0", "-b"]
	status = cli.run_pipeline(cli.parse_args(argv))
	assert status == cli.EXIT_OK
	assert len(list(output_dir.glob("*.pdf"))) == 4
	assert "parallel mode" in capsys.readouterr().out


#============================================
def test_pipeline_reports_partial_failure(tmp_path: pathlib.Path, monkeypatch, capsys) -> None:
	"""
	A failing row gives the partial exit code and is listed on stderr.
	"""
	template, csv_path = write_inputs(tmp_path, "Good\nBad\n")

	def fake_select_renderer(template_path, resolver):
		def renderer(job) -> None:
			if job.text == "Bad":
				raise RuntimeError("disk full")
		return renderer

	monkeypatch.setattr(bulk_text_render.render, "select_renderer", fake_select_renderer)
	status = cli.run_pipeline(cli.parse_args(base_argv(template, csv_path, tmp_path / "out")))
	assert status == cli.EXIT_PARTIAL
	captured = capsys.readouterr()
	assert "Rendered: 1/2" in captured.out
	assert "Bad: RuntimeError: disk full" in captured.err


#============================================
def test_missing_required_options(tmp_path: pathlib.Path, capsys) -> None:
	status = cli.run_pipeline(cli.parse_args(["-c", str(tmp_path / "names.csv")]))
	assert status == cli.EXIT_USAGE
	err = capsys.readouterr().err
	assert "'--template'" in err
	assert "'--x'" in err
	assert "'--csv'" not in err


#============================================
def test_missing_template_file(tmp_path: pathlib.Path, capsys) -> None:
	_template, csv_path = write_inputs(tmp_path, "Jane\n")
	argv = base_argv(tmp_path / "absent.pdf", csv_path, tmp_path / "out")
	assert cli.run_pipeline(cli.parse_args(argv)) == cli.EXIT_FAILURE
	assert "Template file does not exist" in capsys.readouterr().err


#============================================
def test_unsupported_template_format(tmp_path: pathlib.Path) -> None:
	_template, csv_path = write_inputs(tmp_path, "Jane\n")
	gif = tmp_path / "award.gif"
	gif.write_bytes(b"GIF89a")
	argv = base_argv(gif, csv_path, tmp_path / "out")
	assert cli.run_pipeline(cli.parse_args(argv)) == cli.EXIT_FAILURE


#============================================
def test_invalid_style_is_usage_error(tmp_path: pathlib.Path, capsys) -> None:
	template, csv_path = write_inputs(tmp_path, "Jane\n")
	argv = base_argv(template, csv_path, tmp_path / "out") + ["-C", "#12345"]
	assert cli.run_pipeline(cli.parse_args(argv)) == cli.EXIT_USAGE
	assert "Error:" in capsys.readouterr().err


#============================================
def test_empty_csv_is_not_an_error(tmp_path: pathlib.Path, capsys) -> None:
	template, csv_path = write_inputs(tmp_path, "\n,,\n")
	argv = base_argv(template, csv_path, tmp_path / "out")
	assert cli.run_pipeline(cli.parse_args(argv)) == cli.EXIT_OK
	assert "No entries found" in capsys.readouterr().out


#============================================
def test_list_fonts(tmp_path: pathlib.Path, capsys) -> None:
	status = cli.run_pipeline(cli.parse_args(["--list-fonts", "--font-dir", str(tmp_path)]))
	assert status == cli.EXIT_OK
	out = capsys.readouterr().out
	assert "=== Available Fonts ===" in out
	assert "  Helvetica" in out
	assert "  Times New Roman" in out


#============================================
def test_exit_code_for() -> None:
	failure = JobFailure(text="x", error="boom")
	assert cli.exit_code_for(BatchOutcome(success_count=0)) == cli.EXIT_OK
	assert cli.exit_code_for(BatchOutcome(success_count=2)) == cli.EXIT_OK
	assert cli.exit_code_for(BatchOutcome(success_count=1, failures=(failure,))) == cli.EXIT_PARTIAL
	assert cli.exit_code_for(BatchOutcome(success_count=0, failures=(failure,))) == cli.EXIT_FAILURE
