"""
Timeline Writer - Serialize projects back to timeline XML.
"""

import xml.etree.ElementTree as ET
from xml.dom import minidom

from .models import Clip, Project, Timecode


def _format_rate(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


class TimelineWriter:
    """Writer for timeline XML documents."""

    def build(self, project: Project) -> ET.Element:
        root = ET.Element('timeline', name=project.name, frameRate=_format_rate(project.frame_rate))

        for track in project.tracks:
            track_elem = ET.SubElement(root, 'track', kind=track.kind)
            if track.name is not None:
                track_elem.set('name', track.name)
            for clip in track.clips:
                self._add_clip(track_elem, clip)

        for marker in project.markers:
            ET.SubElement(root, 'marker',
                          position=marker.position.to_string(), label=marker.label)
        return root

    def _add_clip(self, parent: ET.Element, clip: Clip) -> ET.Element:
        elem = ET.SubElement(parent, 'clip',
                             name=clip.name,
                             start=clip.start.to_string(),
                             length=clip.length.to_string())
        if clip.fade_in != Timecode.zero():
            elem.set('fadeIn', clip.fade_in.to_string())
        if clip.fade_out != Timecode.zero():
            elem.set('fadeOut', clip.fade_out.to_string())
        if clip.playback_rate != 1.0:
            elem.set('playbackRate', _format_rate(clip.playback_rate))
        if clip.selected:
            elem.set('selected', '1')
        if clip.group_id:
            elem.set('group', clip.group_id)
        if clip.has_velocity_envelope():
            elem.set('velocity', _format_rate(clip.velocity_factor))
        return elem

    def to_string(self, project: Project) -> str:
        xml_str = ET.tostring(self.build(project), encoding='unicode')
        dom = minidom.parseString(xml_str)
        pretty_xml = dom.toprettyxml(indent="    ")

        # Clean up extra blank lines
        lines = [line for line in pretty_xml.split('\n') if line.strip()]
        final_xml = '\n'.join(lines)
        return final_xml.replace(
            '<?xml version="1.0" ?>',
            '<?xml version="1.0" encoding="UTF-8"?>'
        )

    def write_project(self, project: Project, filepath: str) -> str:
        """Write a project to a timeline file."""
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write(self.to_string(project))
        return filepath


def write_timeline(project: Project, filepath: str) -> str:
    """Convenience function to write a project to a timeline file."""
    return TimelineWriter().write_project(project, filepath)
