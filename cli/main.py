"""Command line entry point for adjointnets fits."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

from adjointnets.training import pipelines


def _format_result(result, run_id: str | None = None) -> str:
    payload = {
        "epochs": result.epochs,
        "status": result.status,
        "resnorm": result.resnorm,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
    }
    if getattr(result, "summary_path", ""):
        payload["summary"] = result.summary_path
    if run_id is not None:
        payload["run_id"] = run_id
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="iir-highpass-rnn",
        help="Preset configuration to execute",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON/YAML config override"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed used for parameter initialisation",
    )
    parser.add_argument(
        "--epoch-max",
        type=int,
        help="Override the epoch limit of recurrent runs",
    )
    parser.add_argument(
        "--method",
        choices=["lm", "trf", "dogbox"],
        help="Least-squares method passed to the solver",
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase log verbosity"
    )
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    return dict(pipelines.read_config_file(path))


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config_source = "preset"
    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = _load_override(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
            config_source = "config"
        else:
            config = _merge(config, override)

    train_cfg = config.setdefault("train", {})
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
    if args.epoch_max is not None:
        train_cfg["epoch_max"] = int(args.epoch_max)
    if args.method is not None:
        train_cfg["method"] = args.method

    run_id: str | None = None
    if config_source == "config" and "run_dir" not in train_cfg:
        run_id = pipelines.config_hash(config)
        train_cfg["run_dir"] = str(Path(".artifacts") / run_id)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result, run_id=run_id))


if __name__ == "__main__":
    main()
