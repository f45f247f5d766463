import csv
from typing import Any


class CsvWriter:
    """Writes one row per tag detection, taking serialized detection dicts."""

    HEADER = [
        "stamp", "frame_id",
        "tag_id", "size",
        "tx", "ty", "tz",
        "qx", "qy", "qz", "qw",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @staticmethod
    def _row(det: dict[str, Any]) -> list:
        header = det["pose"]["header"]
        pose = det["pose"]["pose"]
        p = pose["position"]
        o = pose["orientation"]
        return [
            f"{header['stamp']:.6f}", header["frame_id"],
            det["id"], det["size"],
            p["x"], p["y"], p["z"],
            o["x"], o["y"], o["z"], o["w"],
        ]

    def append(self, det: dict[str, Any]):
        self._w.writerow(self._row(det))

    def flush(self):
        if self._fh is not None:
            self._fh.flush()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
