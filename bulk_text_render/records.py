"""
CSV input records and output file naming.
"""

# Standard Library
import csv
import dataclasses
import pathlib

# local repo modules
import bulk_text_render as btr
import bulk_text_render.config


RenderJob = btr.config.RenderJob
StyleConfig = btr.config.StyleConfig

MAX_NAME_LENGTH = 50
UNSAFE_FILENAME_CHARS = '\\/:*?"<>|'


@dataclasses.dataclass(frozen=True)
class CsvEntry:
	name: str
	prefix: str = ""
	postfix: str = ""

	def display_text(self) -> str:
		"""
		Join prefix, name and postfix, skipping blank parts.

		Returns:
			Text to draw, e.g. "Dr. Jane Doe PhD".
		"""
		parts = [self.prefix.strip(), self.name.strip(), self.postfix.strip()]
		return " ".join(part for part in parts if part)


#============================================
def read_entries(csv_path: pathlib.Path) -> list[CsvEntry]:
	"""
	Read CSV rows as name, prefix, postfix columns.

	Blank rows and rows with a blank name are skipped. Extra columns are
	ignored.

	Args:
		csv_path: CSV file path.

	Returns:
		List of CsvEntry.
	"""
	entries: list[CsvEntry] = []
	with pathlib.Path(csv_path).open("r", encoding="utf-8-sig", newline="") as handle:
		for row in csv.reader(handle):
			cells = [cell.strip() for cell in row]
			if not cells or not cells[0]:
				continue
			prefix = cells[1] if len(cells) > 1 else ""
			postfix = cells[2] if len(cells) > 2 else ""
			entries.append(CsvEntry(name=cells[0], prefix=prefix, postfix=postfix))
	return entries


#============================================
def sanitize_token(value: str) -> str:
	"""
	Sanitize a string for filenames.

	Args:
		value: Input string.

	Returns:
		Sanitized string.
	"""
	result: list[str] = []
	for char in value.strip():
		if char in UNSAFE_FILENAME_CHARS or char.isspace():
			result.append("_")
		else:
			result.append(char)
	sanitized = "".join(result).strip("_")[:MAX_NAME_LENGTH]
	if not sanitized:
		return "unnamed"
	return sanitized


#============================================
def build_output_name(
	template_path: pathlib.Path,
	name: str,
	prefix: str | None,
	postfix: str | None,
	extension: str,
) -> str:
	"""
	Build an output filename.

	Pattern: <prefix>-<template stem>-<name>-<postfix>.<extension>

	Args:
		template_path: Template file.
		name: Record name.
		prefix: Optional filename prefix.
		postfix: Optional filename postfix.
		extension: Output extension without dot.

	Returns:
		Filename.
	"""
	parts: list[str] = []
	if prefix and prefix.strip():
		parts.append(sanitize_token(prefix))
	parts.append(pathlib.Path(template_path).stem)
	parts.append(sanitize_token(name))
	if postfix and postfix.strip():
		parts.append(sanitize_token(postfix))
	return "-".join(parts) + "." + extension.lower()


#============================================
def build_jobs(
	entries: list[CsvEntry],
	style: StyleConfig,
	template_path: pathlib.Path,
	output_dir: pathlib.Path,
	prefix: str | None = None,
	postfix: str | None = None,
) -> list[RenderJob]:
	"""
	Build one render job per entry.

	Colliding output names get a numeric suffix so no job overwrites
	another job's file.

	Returns:
		Render jobs in entry order.
	"""
	template_path = pathlib.Path(template_path)
	output_dir = pathlib.Path(output_dir)
	extension = template_path.suffix.lstrip(".")
	jobs: list[RenderJob] = []
	used: dict[str, int] = {}
	for entry in entries:
		filename = build_output_name(template_path, entry.name, prefix, postfix, extension)
		count = used.get(filename.lower(), 0) + 1
		used[filename.lower()] = count
		if count > 1:
			stem, dot, suffix = filename.rpartition(".")
			filename = f"{stem}-{count}{dot}{suffix}"
		jobs.append(
			RenderJob(
				text=entry.display_text(),
				style=style,
				template_path=template_path,
				output_path=output_dir / filename,
			)
		)
	return jobs
