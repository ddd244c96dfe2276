from __future__ import annotations
import argparse
import logging
from pathlib import Path

from mailing_labels.config import load_config
from mailing_labels.models import ALIGNMENTS, LAYOUT_MODES, LINE_SPACINGS, LabelFilters, SOURCE_FILTERS, NAME_FORMATS
from mailing_labels.pipeline import MailingLabelPipeline
from mailing_labels.templates import AVERY_TEMPLATES
from mailing_labels.utils import setup_logging

import dotenv
dotenv.load_dotenv()

logger = logging.getLogger("cli_export")


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Export mailing labels to Excel and Avery PDF sheets.")
    ap.add_argument("--config", default=None, help="config JSON (default: data/config.default.json)")
    ap.add_argument("--out", default="out", help="output directory")
    ap.add_argument("--tier", action="append", dest="tiers", help="tier to include (repeatable)")
    ap.add_argument("--search", default="")
    ap.add_argument("--source", choices=SOURCE_FILTERS, default="all")
    ap.add_argument("--include-discovered", action="store_true")
    ap.add_argument("--log-parse-errors", action="store_true")
    ap.add_argument("--template", choices=sorted(AVERY_TEMPLATES), default=None)
    ap.add_argument("--name-format", choices=NAME_FORMATS, default=None)
    ap.add_argument("--show-to", action="store_true", help='prefix each label with "To:"')
    ap.add_argument("--return-address", action="store_true", default=None,
                    help="print the return address (clinic by default) on each label")
    ap.add_argument("--return-text", default=None, help="return address text, one line per \\n")
    ap.add_argument("--branding", default=None, help="footer text printed on each label")
    ap.add_argument("--font-scale", type=float, default=None)
    ap.add_argument("--line-spacing", choices=LINE_SPACINGS, default=None)
    ap.add_argument("--align", choices=ALIGNMENTS, default=None)
    ap.add_argument("--layout", choices=LAYOUT_MODES, default=None)
    ap.add_argument("--no-pdf", action="store_true")
    ap.add_argument("--no-excel", action="store_true")
    return ap.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    root = Path(__file__).resolve().parent
    cfg = load_config(args.config or root / "data" / "config.default.json")
    setup_logging(cfg.log_level)

    pipe = MailingLabelPipeline(cfg)
    pipe.set_filters(LabelFilters(
        tiers=frozenset(args.tiers or cfg.default_tiers),
        search=args.search,
        source=args.source,
        include_discovered=args.include_discovered,
        log_parse_errors=args.log_parse_errors,
    ))
    if not pipe.labels:
        logger.error("No offices match the filters; nothing to export")
        return 1

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    if not args.no_excel:
        print("Excel:", pipe.export_excel(out_dir, args.name_format))
    if not args.no_pdf:
        custom = cfg.label_customization(
            show_to_label=args.show_to or None,
            show_return_address=args.return_address,
            return_address=args.return_text.replace("\\n", "\n") if args.return_text else None,
            show_branding=True if args.branding else None,
            branding_text=args.branding,
            font_size_multiplier=args.font_scale,
            line_spacing=args.line_spacing,
            to_alignment=args.align,
            layout_mode=args.layout,
        )
        print("PDF:", pipe.export_pdf(out_dir, args.template, args.name_format, customization=custom))
    print(f"Labels: {len(pipe.labels)}  parse errors: {len(pipe.last_build.parse_errors)}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
