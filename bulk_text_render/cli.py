"""
CLI entry points for bulk text rendering.
"""

# Standard Library
import argparse
import logging
import os
import pathlib
import sys
import time

# local repo modules
import bulk_text_render as btr
import bulk_text_render.config
import bulk_text_render.executor
import bulk_text_render.fonts
import bulk_text_render.progress
import bulk_text_render.records
import bulk_text_render.render


StyleConfig = btr.config.StyleConfig

DEFAULT_FONT = btr.config.DEFAULT_FONT
DEFAULT_FONT_SIZE = btr.config.DEFAULT_FONT_SIZE
DEFAULT_OUTPUT_DIR = btr.config.DEFAULT_OUTPUT_DIR
DEFAULT_SEQUENTIAL_THRESHOLD = btr.config.DEFAULT_SEQUENTIAL_THRESHOLD
DEFAULT_BATCH_TIMEOUT = btr.config.DEFAULT_BATCH_TIMEOUT
EXIT_OK = btr.config.EXIT_OK
EXIT_FAILURE = btr.config.EXIT_FAILURE
EXIT_USAGE = btr.config.EXIT_USAGE
EXIT_PARTIAL = btr.config.EXIT_PARTIAL

REQUIRED_OPTIONS = (
	("template_path", "--template"),
	("csv_path", "--csv"),
	("x", "--x"),
	("y", "--y"),
)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command line arguments.

	Args:
		argv: Argument list, defaults to sys.argv.

	Returns:
		Parsed argparse namespace.
	"""
	parser = argparse.ArgumentParser(
		description="Bulk render text onto PDF, PNG, or JPEG templates using data from a CSV file.",
	)

	input_group = parser.add_argument_group("Input")
	input_group.add_argument("-t", "--template", dest="template_path", default=None, help="Template file (PDF, PNG, JPG, JPEG).")
	input_group.add_argument("-c", "--csv", dest="csv_path", default=None, help="CSV file with name,prefix,postfix rows.")

	output_group = parser.add_argument_group("Output")
	output_group.add_argument("-o", "--output", dest="output_dir", default=DEFAULT_OUTPUT_DIR, help="Output folder.")
	output_group.add_argument("--prefix", dest="prefix", default=None, help="Output filename prefix.")
	output_group.add_argument("--postfix", dest="postfix", default=None, help="Output filename postfix.")

	text_group = parser.add_argument_group("Text")
	text_group.add_argument("-x", "--x", dest="x", type=float, default=None, help="X coordinate of the text anchor.")
	text_group.add_argument("-y", "--y", dest="y", type=float, default=None, help="Y coordinate of the text baseline (top-left origin).")
	text_group.add_argument("-u", "--unit", dest="unit", default="PX", help="Coordinate unit: px or mm.")
	text_group.add_argument("-a", "--align", dest="alignment", default="LEFT", help="Text alignment: left, center, right.")
	text_group.add_argument("-f", "--font", dest="font_name", default=DEFAULT_FONT, help="Font name.")
	text_group.add_argument("-s", "--font-size", dest="font_size", type=float, default=DEFAULT_FONT_SIZE, help="Font size.")
	text_group.add_argument("-C", "--color", dest="color", default="#000000", help="Font color, e.g. #FF0000 or #000.")
	text_group.add_argument("-b", "--bold", dest="bold", action="store_true", help="Use bold font style.")
	text_group.add_argument("-i", "--italic", dest="italic", action="store_true", help="Use italic font style.")
	text_group.add_argument("--font-dir", dest="font_dirs", action="append", default=[], help="Extra font directory to search (repeatable).")

	run_group = parser.add_argument_group("Execution")
	run_group.add_argument("-p", "--threads", dest="threads", type=int, default=os.cpu_count() or 1, help="Maximum concurrent renders.")
	run_group.add_argument(
		"--sequential-threshold",
		dest="sequential_threshold",
		type=int,
		default=DEFAULT_SEQUENTIAL_THRESHOLD,
		help="Batches smaller than this run sequentially. 0 always runs in parallel.",
	)
	run_group.add_argument("--timeout", dest="timeout", type=float, default=DEFAULT_BATCH_TIMEOUT, help="Batch timeout in seconds.")

	misc_group = parser.add_argument_group("Misc")
	misc_group.add_argument("--list-fonts", dest="list_fonts", action="store_true", help="List available fonts and exit.")
	misc_group.add_argument("-v", "--verbose", dest="verbose", action="store_true", help="Enable INFO logging.")
	misc_group.add_argument("--debug", dest="debug", action="store_true", help="Enable DEBUG logging.")

	args = parser.parse_args(argv)
	return args


#============================================
def configure_logging(verbose: bool, debug: bool) -> None:
	level = logging.WARNING
	if debug:
		level = logging.DEBUG
	elif verbose:
		level = logging.INFO
	logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


#============================================
def build_resolver(font_dirs: list[str]) -> btr.fonts.FontResolver:
	"""
	Build a font resolver searching extra directories before platform ones.
	"""
	directories = None
	if font_dirs:
		directories = [pathlib.Path(path) for path in font_dirs] + btr.fonts.platform_font_directories()
	catalog = btr.fonts.FontCatalog(directories=directories)
	return btr.fonts.FontResolver(catalog=catalog)


#============================================
def list_available_fonts(resolver: btr.fonts.FontResolver) -> None:
	"""
	Print fonts usable for PDF output and raster-only fonts.

	Args:
		resolver: Font resolver.
	"""
	pdf_fonts = resolver.available_fonts("pdf")
	print("=== Available Fonts ===")
	print()
	print("[Built-in - PDF, PNG, JPEG]")
	for info in pdf_fonts:
		if info.category == "BUILT_IN":
			print(f"  {info.name}")
	print()
	print("[System Fonts - PDF, PNG, JPEG]")
	for info in pdf_fonts:
		if info.category == "SYSTEM":
			print(f"  {info.name}")


#============================================
def validate_args(args: argparse.Namespace) -> int:
	"""
	Check required options and input files.

	Returns:
		EXIT_OK when valid, otherwise the exit code to use.
	"""
	missing = [flag for attribute, flag in REQUIRED_OPTIONS if getattr(args, attribute) is None]
	for flag in missing:
		print(f"Missing required option: '{flag}'", file=sys.stderr)
	if missing:
		return EXIT_USAGE
	template_path = pathlib.Path(args.template_path)
	if not template_path.is_file():
		print(f"Template file does not exist: {template_path}", file=sys.stderr)
		return EXIT_FAILURE
	if not pathlib.Path(args.csv_path).is_file():
		print(f"CSV file does not exist: {args.csv_path}", file=sys.stderr)
		return EXIT_FAILURE
	try:
		btr.render.template_format(template_path)
	except ValueError as error:
		print(str(error), file=sys.stderr)
		return EXIT_FAILURE
	return EXIT_OK


#============================================
def build_style(args: argparse.Namespace) -> StyleConfig:
	"""
	Build the shared text style from CLI args.

	Args:
		args: Parsed argparse namespace.

	Returns:
		StyleConfig in native units.
	"""
	return StyleConfig(
		x=btr.config.to_native_units(args.x, args.unit),
		y=btr.config.to_native_units(args.y, args.unit),
		alignment=btr.config.parse_alignment(args.alignment),
		font_name=args.font_name,
		font_size=args.font_size,
		color=btr.config.parse_hex_color(args.color),
		font_style=btr.config.font_style_from_flags(args.bold, args.italic),
	)


#============================================
def exit_code_for(outcome: btr.config.BatchOutcome) -> int:
	"""
	Map a batch outcome onto a process exit code.
	"""
	if outcome.status == "failed":
		return EXIT_FAILURE
	if outcome.status == "partial":
		return EXIT_PARTIAL
	return EXIT_OK


#============================================
def run_pipeline(args: argparse.Namespace) -> int:
	"""
	Run the full pipeline from CSV input to rendered files.

	Args:
		args: Parsed argparse namespace.

	Returns:
		Process exit code.
	"""
	configure_logging(args.verbose, args.debug)
	resolver = build_resolver(args.font_dirs)
	if args.list_fonts:
		list_available_fonts(resolver)
		return EXIT_OK

	status = validate_args(args)
	if status != EXIT_OK:
		return status
	try:
		style = build_style(args)
	except ValueError as error:
		print(f"Error: {error}", file=sys.stderr)
		return EXIT_USAGE

	template_path = pathlib.Path(args.template_path)
	output_dir = pathlib.Path(args.output_dir)
	output_dir.mkdir(parents=True, exist_ok=True)

	entries = btr.records.read_entries(pathlib.Path(args.csv_path))
	if not entries:
		print("No entries found in CSV file.")
		return EXIT_OK
	jobs = btr.records.build_jobs(entries, style, template_path, output_dir, args.prefix, args.postfix)
	renderer = btr.render.select_renderer(template_path, resolver)

	mode = "sequential" if len(jobs) < args.sequential_threshold else "parallel"
	print(f"Processing {len(jobs)} entries ({mode} mode)...")
	start_time = time.perf_counter()
	tracker = btr.progress.ProgressTracker(len(jobs))
	try:
		outcome = btr.executor.execute_all(
			jobs,
			renderer,
			args.threads,
			tracker,
			sequential_threshold=args.sequential_threshold,
			timeout=args.timeout,
		)
	except ValueError as error:
		print(f"Error: {error}", file=sys.stderr)
		return EXIT_USAGE
	total_time = time.perf_counter() - start_time

	print(f"Rendered: {outcome.success_count}/{len(jobs)}")
	if outcome.timed_out:
		print("Batch timeout exceeded; remaining jobs were cancelled.", file=sys.stderr)
	if outcome.failures:
		print(f"Failed: {outcome.failure_count}", file=sys.stderr)
		for failure in outcome.failures:
			print(f"  {failure.text}: {failure.error}", file=sys.stderr)
	print(f"Output folder: {output_dir.resolve()}")
	print(f"Timing: total={total_time:.2f}s")
	return exit_code_for(outcome)


#============================================
def main() -> None:
	"""
	Main entry point.
	"""
	args = parse_args()
	sys.exit(run_pipeline(args))
