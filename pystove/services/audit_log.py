# -*- coding: utf-8 -*-
"""
audit_log.py - Audit trail of administrative actions

Responsibilities:
- Record who changed what (cleaning, targets, schedules, mode, manual commands)
- Write one JSON object per line to daily files
- Automatic daily file rotation at midnight (UTC)
"""

import json
import os
from typing import Any, Dict, Optional

from pystove.core.clock import to_iso


class AuditLog:
    """Abstract audit sink."""

    def record(self, action: str, value: Any, metadata: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError


class JsonlAuditLog(AuditLog):
    """Appends audit records to <log_dir>/<YYYY-MM-DD>.jsonl."""

    def __init__(self, ad, log_dir: str, clock):
        """Initialize the audit log.

        Args:
            ad: AppDaemon API reference
            log_dir: Directory for the daily files
            clock: Clock instance
        """
        self.ad = ad
        self.log_dir = log_dir
        self.clock = clock
        self.current_date = None
        self.log_file = None

        self._setup_log_directory()

    def _setup_log_directory(self):
        if not os.path.exists(self.log_dir):
            os.makedirs(self.log_dir)
            self.ad.log(f"Created audit log directory: {self.log_dir}")

        gitignore_path = os.path.join(self.log_dir, ".gitignore")
        if not os.path.exists(gitignore_path):
            with open(gitignore_path, 'w') as f:
                f.write("*.jsonl\n")

    def _check_date_rotation(self, today) -> None:
        filepath = os.path.join(self.log_dir, f"{today.isoformat()}.jsonl")
        if self.current_date == today and self.log_file is not None and os.path.exists(filepath):
            return

        if self.log_file:
            self.log_file.close()
        self.current_date = today
        is_new = not os.path.exists(filepath)
        self.log_file = open(filepath, 'a')
        if is_new:
            self.ad.log(f"Started new audit log: {os.path.basename(filepath)}")

    def record(self, action: str, value: Any, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Append one audit record.

        Raises:
            OSError: If the file cannot be written
        """
        now = self.clock.current_time()
        entry = {
            'timestamp': to_iso(now),
            'action': action,
            'value': value,
        }
        for key, val in (metadata or {}).items():
            if val is not None:
                entry[key] = val

        self._check_date_rotation(now.date())
        self.log_file.write(json.dumps(entry, default=str) + "\n")
        self.log_file.flush()
        self.ad.log(f"Audit: {action}", level="DEBUG")

    def close(self) -> None:
        if self.log_file:
            self.log_file.close()
            self.log_file = None
