from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional


@dataclass
class CaptureConfig:
    device: int | str = 0
    fps: int = 15
    width: int = 640
    height: int = 480

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DetectorConfig:
    camera_name: str = "cam"
    # list of {id, size, frame_id?}; None means no tags configured
    tag_descriptions: Optional[list[Any]] = None
    strict_tag_descriptions: bool = False
    tag_family: str = "36h11"
    sensor_frame_id: str = ""  # overrides the image frame when set
    image_frame_id: str = "camera"
    image_annotation_on: bool = True
    warn_throttle_sec: float = 10.0
    calibration_path: str = "calib/camera.yml"
    output_root: str = "data/sessions"
    duration_sec: float = 0.0
    max_frames: Optional[int] = None
    dry_run: bool = False
    capture: CaptureConfig = field(default_factory=CaptureConfig)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "DetectorConfig":
        for key, value in kwargs.items():
            if value is None:
                continue
            if hasattr(self, key):
                setattr(self, key, value)
            elif hasattr(self.capture, key):
                setattr(self.capture, key, value)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    import yaml

    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def load_config(path: str | Path) -> DetectorConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = DetectorConfig()
    cfg.camera_name = str(raw.get("camera_name", cfg.camera_name))
    # validated when the registry is built
    cfg.tag_descriptions = raw.get("tag_descriptions", cfg.tag_descriptions)
    cfg.strict_tag_descriptions = bool(raw.get("strict_tag_descriptions", cfg.strict_tag_descriptions))
    cfg.tag_family = str(raw.get("tag_family", cfg.tag_family))
    cfg.sensor_frame_id = str(raw.get("sensor_frame_id", cfg.sensor_frame_id) or "")
    cfg.image_frame_id = str(raw.get("image_frame_id", cfg.image_frame_id))
    cfg.image_annotation_on = bool(raw.get("image_annotation_on", cfg.image_annotation_on))
    cfg.warn_throttle_sec = float(raw.get("warn_throttle_sec", cfg.warn_throttle_sec))
    cfg.calibration_path = str(raw.get("calibration_path", cfg.calibration_path))
    cfg.output_root = str(raw.get("output_root", cfg.output_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))

    cap_raw = raw.get("capture")
    if cap_raw is not None:
        if not isinstance(cap_raw, dict):
            raise ValueError("capture must be a mapping")
        cap = CaptureConfig()
        cap.device = cap_raw.get("device", cap.device)
        cap.fps = int(cap_raw.get("fps", cap.fps))
        cap.width = int(cap_raw.get("width", cap.width))
        cap.height = int(cap_raw.get("height", cap.height))
        cfg.capture = cap

    return cfg
