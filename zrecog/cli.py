# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Command line interface for training and running recognizers.

Every subcommand prints JSON (to ``--out``, ``-`` meaning stdout). Labeled
samples are read from a directory holding one subdirectory per label::

    samples/
      0/ a.png b.png ...
      1/ a.png ...
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from .bootstrap import DirectoryBootstrapSource, train_recognizer
from .config import RecogConfig
from .correlation import identify_many
from .debug import render_averages, render_matches
from .decoder import decode
from .errors import RecogError
from .outliers import find_outliers, remove_outliers
from .serialization import load_store, save_store
from .splitting import identify_line
from .store import TemplateStore
from .utils import dump_json, env_str

LOGGER = logging.getLogger("zrecog.cli")

_IMAGE_SUFFIXES = {".png", ".bmp", ".gif", ".jpg", ".jpeg", ".tif", ".tiff", ".pbm", ".pgm"}


def _configure_logging(verbose: int = 0) -> None:
    level_name = (env_str("ZRECOG_LOG_LEVEL") or "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    if verbose:
        level = logging.DEBUG if verbose > 1 else logging.INFO
    logger = logging.getLogger("zrecog")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def _load_image(path: Path) -> np.ndarray:
    with Image.open(path) as img:
        return np.asarray(img.convert("L"), dtype=np.uint8).copy()


def _image_files(directory: Path) -> List[Path]:
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in _IMAGE_SUFFIXES)


def load_labeled_dir(directory: Path) -> List[Tuple[str, np.ndarray]]:
    """Read ``directory/<label>/*.png`` into ``(label, image)`` pairs."""
    if not directory.is_dir():
        raise SystemExit(f"not a directory: {directory}")
    samples = []
    for sub in sorted(p for p in directory.iterdir() if p.is_dir()):
        for path in _image_files(sub):
            samples.append((sub.name, _load_image(path)))
    return samples


def _config_from_args(args: argparse.Namespace) -> RecogConfig:
    overrides: Dict[str, Any] = {}
    for name in (
        "scale_w",
        "scale_h",
        "template_type",
        "template_use",
        "line_width",
        "threshold",
        "max_y_shift",
        "charset_type",
        "min_samples",
        "min_nopad",
        "max_afterpad",
        "boot_iters",
    ):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    base = RecogConfig.from_env()
    return RecogConfig(**{**base.model_dump(), **overrides})


def _add_config_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("recognizer configuration")
    group.add_argument("--scale-w", dest="scale_w", type=int)
    group.add_argument("--scale-h", dest="scale_h", type=int)
    group.add_argument("--template-type", dest="template_type", choices=["image", "outline"])
    group.add_argument("--template-use", dest="template_use", choices=["all", "average"])
    group.add_argument("--line-width", dest="line_width", type=int)
    group.add_argument("--threshold", type=int)
    group.add_argument("--max-y-shift", dest="max_y_shift", type=int)
    group.add_argument("--charset", dest="charset_type")
    group.add_argument("--min-samples", dest="min_samples", type=int)
    group.add_argument("--min-nopad", dest="min_nopad", type=int)
    group.add_argument("--max-afterpad", dest="max_afterpad", type=int)
    group.add_argument("--boot-iters", dest="boot_iters", type=int)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zrecog", description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("-v", "--verbose", action="count", default=0)
    sub = parser.add_subparsers(dest="command", required=True)

    train = sub.add_parser("train", help="Train a recognizer and save it")
    train.add_argument("--samples", type=Path, required=True, help="Directory of per-label subdirectories")
    train.add_argument("--store", type=Path, required=True, help="Output store (JSON)")
    train.add_argument("--unlabeled", type=Path, help="Directory of unlabeled glyph images")
    train.add_argument("--bootstrap", type=Path, help="Directory of serialized bootstrap stores")
    train.add_argument("--remove-outliers", dest="remove_outliers", type=float, metavar="SCORE")
    train.add_argument("--averages-png", dest="averages_png", type=Path)
    train.add_argument("--out", default="-")
    _add_config_flags(train)

    outliers = sub.add_parser("outliers", help="List samples that disagree with the class averages")
    outliers.add_argument("--store", type=Path, required=True)
    outliers.add_argument("--min-score", dest="min_score", type=float, default=0.0)
    outliers.add_argument("--cleaned", type=Path, help="Write a rebuilt store without the outliers")
    outliers.add_argument("--out", default="-")

    ident = sub.add_parser("identify", help="Identify isolated character images")
    ident.add_argument("--store", type=Path, required=True)
    ident.add_argument("images", nargs="+", type=Path)
    ident.add_argument("--workers", type=int)
    ident.add_argument("--out", default="-")

    for name, help_text in (("decode", "Decode one strip of touching glyphs"), ("line", "Split and identify a text line")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--store", type=Path, required=True)
        cmd.add_argument("image", type=Path)
        cmd.add_argument("--overlay", type=Path, help="Write a PNG with the matches drawn in")
        cmd.add_argument("--out", default="-")
        if name == "decode":
            cmd.add_argument("--no-rescore", dest="rescore", action="store_false")

    return parser


def _store_summary(store: TemplateStore) -> Dict[str, Any]:
    return {
        "classes": store.labels.labels,
        "samples": {store.label_for(i): len(store.samples(i)) for i in range(store.num_classes)},
        "finalized": store.finalized,
        "config": store.config,
    }


def _handle_train(args: argparse.Namespace) -> None:
    config = _config_from_args(args)
    labeled = load_labeled_dir(args.samples)
    unlabeled = [_load_image(p) for p in _image_files(args.unlabeled)] if args.unlabeled else []
    bootstrap = DirectoryBootstrapSource(args.bootstrap) if args.bootstrap else None
    store = train_recognizer(
        config,
        labeled,
        unlabeled=unlabeled,
        bootstrap=bootstrap,
        remove_outliers_below=args.remove_outliers,
    )
    save_store(store, args.store)
    if args.averages_png:
        render_averages(store).save(args.averages_png)
    dump_json({"store": args.store, **_store_summary(store)}, args.out)


def _handle_outliers(args: argparse.Namespace) -> None:
    store = load_store(args.store)
    if not store.averages_built:
        store.build_averages()
    flagged = sorted(find_outliers(store, args.min_score))
    payload: Dict[str, Any] = {"outliers": [{"label": label, "sample": idx} for label, idx in flagged]}
    if args.cleaned:
        cleaned = TemplateStore.from_samples(remove_outliers(store, args.min_score), store.config, finalize=True)
        save_store(cleaned, args.cleaned)
        payload["cleaned"] = args.cleaned
    dump_json(payload, args.out)


def _handle_identify(args: argparse.Namespace) -> None:
    store = load_store(args.store)
    seq = identify_many(store, [_load_image(p) for p in args.images], workers=args.workers)
    dump_json(
        [{"image": path, **result.model_dump()} for path, result in zip(args.images, seq.results())],
        args.out,
    )


def _handle_strip(args: argparse.Namespace) -> None:
    store = load_store(args.store)
    image = _load_image(args.image)
    if args.command == "decode":
        seq = decode(store, image, rescore=args.rescore)
    else:
        seq = identify_line(store, image)
    if args.overlay:
        render_matches(image, seq, threshold=store.config.threshold, zoom=1).save(args.overlay)
    dump_json({"text": seq.text, **seq.model_dump()}, args.out)


_HANDLERS = {
    "train": _handle_train,
    "outliers": _handle_outliers,
    "identify": _handle_identify,
    "decode": _handle_strip,
    "line": _handle_strip,
}


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = _parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        _HANDLERS[args.command](args)
    except (RecogError, ValueError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        raise SystemExit(f"zrecog {args.command}: {exc}") from exc


if __name__ == "__main__":  # pragma: no cover
    main()
