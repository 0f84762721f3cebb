#!/usr/bin/env python3
"""
Textured Model Inspector

This script decodes one or more OBJ models together with their material and
PPM texture, reports what was found, and optionally writes texture previews
and summary images.
"""

from __future__ import annotations

import argparse
import copy
import datetime
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from tqdm import tqdm

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from texmesh import errors, model, visualise


# Set up logging
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger("inspect")

DEFAULT_CONFIG: Dict = {
    "logging": {"level": "INFO"},
    "mesh": {"strict_texcoords": False},
    "texture": {"load": True, "preview": False},
    "io": {"output_dir": "results/inspect"},
}


def _merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict:
    """Load configuration from YAML file.

    Keys missing from the file fall back to DEFAULT_CONFIG.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    # Default config path
    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
        if not config_path.exists():
            return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return _merge(DEFAULT_CONFIG, config)


def inspect_model(
    mesh_path: str,
    output_dir: str,
    config: Dict,
    visualise_results: bool = False,
    show_viewer: bool = False
) -> Dict:
    """Load a single model and collect its report entry.

    Args:
        mesh_path: Path to the OBJ file
        output_dir: Directory for previews
        config: Configuration dictionary
        visualise_results: Whether to write summary images
        show_viewer: Whether to open the interactive viewer

    Returns:
        Report dictionary for this model
    """
    textured = model.TexturedModel(strict_texcoords=config["mesh"]["strict_texcoords"])
    result = textured.load_mesh(mesh_path)

    report = {
        "mesh": str(mesh_path),
        "triangles": result.triangles,
        "counts": textured.mesh.counts,
        "material": textured.mesh.material.name if textured.mesh.material else None,
        "texture_path": textured.pending_texture_path,
        "texture": None,
    }

    image = None
    if result.has_deferred_texture and config["texture"]["load"]:
        try:
            image = textured.load_pending_texture()
        except errors.TexMeshError as e:
            logger.warning(f"Continuing without texture for {mesh_path}: {e}")

    if image is not None:
        report["texture"] = {"width": image.width, "height": image.height, "format": image.magic}

        if config["texture"]["preview"]:
            preview_path = os.path.join(output_dir, f"{Path(mesh_path).stem}_texture.png")
            visualise.save_texture_preview(image, preview_path)

    if visualise_results:
        summary_path = os.path.join(output_dir, f"{Path(mesh_path).stem}_summary.png")
        visualise.create_model_summary_image(textured.mesh, image, summary_path)

    if show_viewer:
        visualise.show(textured.mesh, image)

    report["timings"] = dict(textured.timings)
    return report


def run_inspection(
    mesh_paths: List[str],
    output_dir: Optional[str] = None,
    config_path: Optional[str] = None,
    load_texture: Optional[bool] = None,
    strict_texcoords: Optional[bool] = None,
    visualise_results: bool = False,
    show_viewer: bool = False
) -> Dict:
    """Inspect a batch of models and write report.json.

    Command-line values override the configuration file when given.

    Returns:
        Report dictionary
    """
    config = load_config(config_path)

    if output_dir is not None:
        config["io"]["output_dir"] = output_dir
    if load_texture is not None:
        config["texture"]["load"] = load_texture
    if strict_texcoords is not None:
        config["mesh"]["strict_texcoords"] = strict_texcoords

    output_dir = config["io"]["output_dir"]
    os.makedirs(output_dir, exist_ok=True)

    logging.getLogger().setLevel(config["logging"]["level"])

    # Set up file logging
    file_handler = logging.FileHandler(os.path.join(output_dir, "log.txt"))
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(file_handler)

    models = []
    failures = []
    try:
        for mesh_path in tqdm(mesh_paths, desc="Loading models"):
            try:
                models.append(inspect_model(mesh_path, output_dir, config, visualise_results, show_viewer))
            except errors.TexMeshError as e:
                logger.error(f"Failed to load {mesh_path}: {e}")
                failures.append({"mesh": str(mesh_path), "error": str(e)})
    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()

    report = {
        "datetime": datetime.datetime.now().isoformat(),
        "models": models,
        "failures": failures,
    }

    report_path = os.path.join(output_dir, "report.json")
    with open(report_path, "w") as f:
        json.dump(report, f, indent=2)

    logger.info(f"Inspected {len(models)} models ({len(failures)} failed), report saved to {report_path}")
    return report


def main():
    """Main function to parse arguments and run the inspection."""
    parser = argparse.ArgumentParser(description="Textured Model Inspector")
    parser.add_argument(
        "meshes", nargs="+",
        help="Paths to OBJ files"
    )
    parser.add_argument(
        "--output", "-o", dest="output_dir", default=None,
        help="Path to output directory"
    )
    parser.add_argument(
        "--config", "-c", dest="config_path", default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--no-texture", dest="load_texture", action="store_false", default=None,
        help="Skip loading textures"
    )
    parser.add_argument(
        "--strict-texcoords", dest="strict_texcoords", action="store_true", default=None,
        help="Fail on out-of-range texture coordinate indices"
    )
    parser.add_argument(
        "--visualise", "-v", dest="visualise", action="store_true",
        help="Write summary images"
    )
    parser.add_argument(
        "--show", dest="show", action="store_true",
        help="Open an interactive viewer for each model"
    )

    args = parser.parse_args()

    try:
        report = run_inspection(
            args.meshes,
            args.output_dir,
            args.config_path,
            args.load_texture,
            args.strict_texcoords,
            args.visualise,
            args.show
        )
    except Exception as e:
        logger.exception(f"Error running inspection: {e}")
        sys.exit(1)

    if report["failures"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
