"""
Native Windows process provider.

Talks to kernel32 directly through ctypes:

  1. CreateToolhelp32Snapshot + Process32FirstW/Process32NextW to walk the
     process table.
  2. OpenProcess with a list of access rights, most privileged first, to get
     a handle for GetProcessTimes or TerminateProcess.
  3. CloseHandle on every handle before the call that opened it returns.

kernel32 is loaded the first time a WindowsProvider is built without an
explicit library and reused for the rest of the interpreter's life.
"""

import ctypes
import functools
import logging
import sys
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from ctypes import wintypes
from typing import Any

from cpuguard.errors import (
    AccessDenied,
    EnumerationError,
    PidError,
    ProcessNotFound,
    QueryError,
    TerminationError,
)
from cpuguard.models import CpuTimes, ProcessRecord, filetime_to_ns
from cpuguard.provider import ProcessProvider

log = logging.getLogger(__name__)

# Win32 constants
TH32CS_SNAPPROCESS = 0x00000002
MAX_PATH = 260
PROCESS_TERMINATE = 0x0001
PROCESS_QUERY_INFORMATION = 0x0400
PROCESS_QUERY_LIMITED_INFORMATION = 0x1000  # Vista+
ERROR_ACCESS_DENIED = 5
ERROR_NO_MORE_FILES = 18
ERROR_INVALID_PARAMETER = 87  # OpenProcess on a pid that does not exist
INVALID_HANDLE_VALUE = wintypes.HANDLE(-1).value

# Exit code handed to TerminateProcess
KILLED_EXIT_CODE = 1


class PROCESSENTRY32W(ctypes.Structure):
    """Toolhelp32 process entry (wide-character variant)."""

    _fields_ = [
        ("dwSize", wintypes.DWORD),
        ("cntUsage", wintypes.DWORD),
        ("th32ProcessID", wintypes.DWORD),
        ("th32DefaultHeapID", ctypes.c_size_t),
        ("th32ModuleID", wintypes.DWORD),
        ("cntThreads", wintypes.DWORD),
        ("th32ParentProcessID", wintypes.DWORD),
        ("pcPriClassBase", wintypes.LONG),
        ("dwFlags", wintypes.DWORD),
        ("szExeFile", wintypes.WCHAR * MAX_PATH),
    ]


@functools.cache
def _load_kernel32() -> Any:
    """Load kernel32 and declare the signatures cpuguard calls."""
    if sys.platform != "win32":
        raise OSError("the native Windows provider is only available on Windows")

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    filetime_p = ctypes.POINTER(wintypes.FILETIME)
    entry_p = ctypes.POINTER(PROCESSENTRY32W)
    signatures = {
        "CreateToolhelp32Snapshot": ([wintypes.DWORD, wintypes.DWORD], wintypes.HANDLE),
        "Process32FirstW": ([wintypes.HANDLE, entry_p], wintypes.BOOL),
        "Process32NextW": ([wintypes.HANDLE, entry_p], wintypes.BOOL),
        "OpenProcess": ([wintypes.DWORD, wintypes.BOOL, wintypes.DWORD], wintypes.HANDLE),
        "GetProcessTimes": ([wintypes.HANDLE, filetime_p, filetime_p, filetime_p, filetime_p], wintypes.BOOL),
        "TerminateProcess": ([wintypes.HANDLE, wintypes.UINT], wintypes.BOOL),
        "CloseHandle": ([wintypes.HANDLE], wintypes.BOOL),
    }
    for name, (argtypes, restype) in signatures.items():
        func = getattr(kernel32, name)
        func.argtypes = argtypes
        func.restype = restype
    return kernel32


def _filetime_ns(ft: wintypes.FILETIME) -> int:
    return filetime_to_ns(ft.dwHighDateTime, ft.dwLowDateTime)


def _record_from_entry(entry: PROCESSENTRY32W) -> ProcessRecord:
    return ProcessRecord(
        pid=int(entry.th32ProcessID),
        ppid=int(entry.th32ParentProcessID),
        executable=entry.szExeFile,
    )


class WindowsProvider(ProcessProvider):
    """
    Provider backed by kernel32.

    Every handle (snapshot or process) lives only inside the method that
    opened it and is closed on all exit paths, errors included.
    """

    # Access rights to try, broadest first.
    QUERY_ACCESS: Sequence[int] = (
        PROCESS_QUERY_INFORMATION,
        PROCESS_QUERY_LIMITED_INFORMATION,
    )
    TERMINATE_ACCESS: Sequence[int] = (PROCESS_TERMINATE,)

    def __init__(
        self,
        kernel32: Any = None,
        get_last_error: Callable[[], int] | None = None,
    ) -> None:
        """
        Initialize the WindowsProvider.

        Args:
            kernel32: Object exposing the kernel32 functions used here.
                Defaults to the real library, loaded once per process.
            get_last_error: Returns the thread's last Win32 error code.
                Defaults to ctypes.get_last_error.
        """
        if kernel32 is None:
            kernel32 = _load_kernel32()
            get_last_error = get_last_error or ctypes.get_last_error
        self._kernel32 = kernel32
        self._get_last_error = get_last_error or (lambda: 0)

    @contextmanager
    def _snapshot(self) -> Iterator[Any]:
        handle = self._kernel32.CreateToolhelp32Snapshot(TH32CS_SNAPPROCESS, 0)
        if not handle or handle == INVALID_HANDLE_VALUE:
            raise EnumerationError(
                f"CreateToolhelp32Snapshot failed (error {self._get_last_error()})"
            )
        try:
            yield handle
        finally:
            self._kernel32.CloseHandle(handle)

    @contextmanager
    def _open_process(
        self,
        pid: int,
        access_levels: Sequence[int],
        error_cls: type[PidError],
    ) -> Iterator[Any]:
        """Open ``pid`` with the first access level granted and close it on exit."""
        handle = None
        code = 0
        for access in access_levels:
            handle = self._kernel32.OpenProcess(access, False, pid)
            if handle:
                break
            code = self._get_last_error()
            log.debug("OpenProcess(%d, %#06x) failed with error %d", pid, access, code)

        if not handle:
            if code == ERROR_ACCESS_DENIED:
                raise AccessDenied(f"access denied opening process {pid}", pid=pid)
            if code == ERROR_INVALID_PARAMETER:
                raise ProcessNotFound(f"process {pid} not found", pid=pid)
            raise error_cls(f"OpenProcess({pid}) failed (error {code})", pid=pid)

        try:
            yield handle
        finally:
            self._kernel32.CloseHandle(handle)

    def enumerate_all(self) -> list[ProcessRecord]:
        entry = PROCESSENTRY32W()
        entry.dwSize = ctypes.sizeof(entry)
        records: list[ProcessRecord] = []

        with self._snapshot() as snapshot:
            if not self._kernel32.Process32FirstW(snapshot, ctypes.byref(entry)):
                raise EnumerationError(
                    f"Process32FirstW failed (error {self._get_last_error()})"
                )
            while True:
                records.append(_record_from_entry(entry))
                if not self._kernel32.Process32NextW(snapshot, ctypes.byref(entry)):
                    code = self._get_last_error()
                    if code != ERROR_NO_MORE_FILES:
                        raise EnumerationError(f"Process32NextW failed (error {code})")
                    break

        return records

    def query_cpu_time(self, record: ProcessRecord) -> CpuTimes:
        pid = record.pid
        creation = wintypes.FILETIME()
        exited = wintypes.FILETIME()
        kernel = wintypes.FILETIME()
        user = wintypes.FILETIME()

        with self._open_process(pid, self.QUERY_ACCESS, QueryError) as handle:
            ok = self._kernel32.GetProcessTimes(
                handle,
                ctypes.byref(creation),
                ctypes.byref(exited),
                ctypes.byref(kernel),
                ctypes.byref(user),
            )
            if not ok:
                code = self._get_last_error()
                raise QueryError(f"GetProcessTimes({pid}) failed (error {code})", pid=pid)

        return CpuTimes(user_ns=_filetime_ns(user), system_ns=_filetime_ns(kernel))

    def terminate(self, record: ProcessRecord) -> None:
        pid = record.pid
        with self._open_process(pid, self.TERMINATE_ACCESS, TerminationError) as handle:
            if not self._kernel32.TerminateProcess(handle, KILLED_EXIT_CODE):
                code = self._get_last_error()
                if code == ERROR_ACCESS_DENIED:
                    raise AccessDenied(f"access denied terminating {pid}", pid=pid)
                raise TerminationError(f"TerminateProcess({pid}) failed (error {code})", pid=pid)
