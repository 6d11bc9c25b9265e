"""
Timeline Parser - Reads timeline XML documents into Python objects.

All parsing goes through defusedxml, so external entities, DTD retrieval
and entity-expansion bombs are rejected before any element is built.
"""

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

import defusedxml.ElementTree as _safe_ET

from .models import AudioClip, Clip, Marker, Project, Timecode, Track, VideoClip

# Maximum timeline file size (50 MB)
_MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024


class TimelineParser:
    """Parser for timeline XML documents.

    Layout:
        <timeline name="Edit" frameRate="30">
            <track name="main" kind="video">
                <clip name="A" start="0ms" length="1000ms" fadeOut="400ms"/>
            </track>
            <marker position="600ms" label="v"/>
        </timeline>
    """

    def __init__(self):
        self.frame_rate: float = 30.0

    def parse_file(self, filepath: str) -> Project:
        """Parse a timeline file and return a Project.

        Enforces a file size limit before parsing.
        """
        path = Path(filepath)
        file_size = path.stat().st_size
        if file_size > _MAX_FILE_SIZE_BYTES:
            raise ValueError(
                f"Timeline file exceeds maximum size "
                f"({file_size / 1024 / 1024:.1f} MB > "
                f"{_MAX_FILE_SIZE_BYTES / 1024 / 1024:.0f} MB limit)"
            )
        try:
            tree = _safe_ET.parse(filepath)
        except ET.ParseError as e:
            raise ValueError(f"Malformed timeline XML: {e}")
        return self._parse_timeline(tree.getroot())

    def parse_string(self, xml_string: str) -> Project:
        """Parse a timeline document from a string."""
        try:
            root = _safe_ET.fromstring(xml_string)
        except ET.ParseError as e:
            raise ValueError(f"Malformed timeline XML: {e}")
        return self._parse_timeline(root)

    def _time(self, value: Optional[str]) -> Timecode:
        return Timecode.from_string(value or "0ms", self.frame_rate)

    def _parse_timeline(self, root: ET.Element) -> Project:
        if root.tag != 'timeline':
            raise ValueError(f"Expected <timeline> root element, found <{root.tag}>")

        try:
            self.frame_rate = float(root.get('frameRate', '30'))
        except ValueError:
            raise ValueError(f"Invalid frameRate: {root.get('frameRate')}")
        if self.frame_rate <= 0:
            raise ValueError(f"Invalid frameRate: {root.get('frameRate')}")

        project = Project(name=root.get('name', 'Untitled'), frame_rate=self.frame_rate)

        for track_elem in root.findall('track'):
            project.add_track(self._parse_track(track_elem))

        for marker_elem in root.findall('marker'):
            project.add_marker(Marker(
                position=self._time(marker_elem.get('position')),
                label=marker_elem.get('label', ''),
            ))

        return project

    def _parse_track(self, elem: ET.Element) -> Track:
        kind = elem.get('kind', 'video')
        if kind not in ('video', 'audio'):
            raise ValueError(f"Invalid track kind: {kind}")
        clips = [self._parse_clip(c, kind) for c in elem.findall('clip')]
        return Track(name=elem.get('name'), kind=kind, clips=clips)

    def _parse_clip(self, elem: ET.Element, kind: str) -> Clip:
        try:
            playback_rate = float(elem.get('playbackRate', '1'))
        except ValueError:
            raise ValueError(f"Invalid playbackRate: {elem.get('playbackRate')}")

        attrs = dict(
            name=elem.get('name', ''),
            start=self._time(elem.get('start')),
            length=self._time(elem.get('length')),
            fade_in=self._time(elem.get('fadeIn')),
            fade_out=self._time(elem.get('fadeOut')),
            playback_rate=playback_rate,
            selected=elem.get('selected', '0') in ('1', 'true'),
            group_id=elem.get('group') or None,
        )
        if attrs['length'].ticks < 0:
            raise ValueError(f"Negative clip length: {elem.get('length')}")

        if kind == 'audio':
            return AudioClip(**attrs)

        velocity = elem.get('velocity')
        try:
            return VideoClip(velocity=float(velocity) if velocity else None, **attrs)
        except ValueError:
            raise ValueError(f"Invalid velocity: {velocity}")


def parse_timeline(filepath: str) -> Project:
    """Convenience function to parse a timeline file."""
    return TimelineParser().parse_file(filepath)
