"""
Group resolution - which clips on the auxiliary tracks move together.

Clips sharing a group id form a group, and groups can span tracks. Clips
without a group id are groups of one.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List

from .models import Clip, EditConfig, Project, Track


@dataclass(eq=False)
class ClipGroup:
    """A set of clips that must keep their relative layout."""
    members: List[Clip] = field(default_factory=list)

    @property
    def anchor(self) -> Clip:
        """Earliest-starting member; ties go to the earlier listed member."""
        return min(self.members, key=lambda c: c.start)

    def __contains__(self, clip: Clip) -> bool:
        return any(m is clip for m in self.members)

    def __len__(self) -> int:
        return len(self.members)


class GroupResolver:
    """
    Computes connected components over the "same group id" relation.

    Usage:
        resolver = GroupResolver.for_project(project, primary, config)
        for group in resolver.groups:
            print(group.anchor.name, len(group))
    """

    def __init__(self, clips: List[Clip]):
        self.clips = list(clips)
        self._adjacency = self._build_adjacency()
        self.groups = self._resolve()

    @classmethod
    def for_project(cls, project: Project, primary: Track, config: EditConfig) -> 'GroupResolver':
        """Resolve groups over every auxiliary track of the project."""
        clips = []
        for track in project.auxiliary_tracks(primary, config):
            clips.extend(track.clips)
        return cls(clips)

    def _build_adjacency(self) -> Dict[int, List[int]]:
        """Neighbour lists by clip position, built once from the group ids."""
        by_group: Dict[str, List[int]] = {}
        for i, clip in enumerate(self.clips):
            if clip.group_id:
                by_group.setdefault(clip.group_id, []).append(i)

        adjacency: Dict[int, List[int]] = {i: [] for i in range(len(self.clips))}
        for indices in by_group.values():
            for i in indices:
                adjacency[i].extend(j for j in indices if j != i)
        return adjacency

    def _resolve(self) -> List[ClipGroup]:
        groups = []
        visited = set()
        for root in range(len(self.clips)):
            if root in visited:
                continue
            visited.add(root)
            members = []
            queue = deque([root])
            while queue:
                current = queue.popleft()
                members.append(current)
                for neighbour in self._adjacency[current]:
                    if neighbour not in visited:
                        visited.add(neighbour)
                        queue.append(neighbour)
            members.sort()
            groups.append(ClipGroup([self.clips[i] for i in members]))
        return groups
