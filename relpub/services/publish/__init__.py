"""Release publishing.

- progress / sequencer: the persisted cursor over the ordered step list
- validator: GitHub Actions run polling after push and release
- steps: the concrete publish steps for one repository
- service: per-repository preconditions and the whole-run loop
"""

from __future__ import annotations
