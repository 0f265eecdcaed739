"""
Pass/fail accounting and console output for check suites.

Every suite records its checks on a ``TestReport``. A check that raises is
recorded as FAIL and the suite moves on. Skipped checks do not count towards
the pass rate.
"""

import json
import time
import logging
from enum import Enum
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from colorama import Fore, Style, init

from .exceptions import SkipCheck

init(autoreset=True)

logger = logging.getLogger(__name__)


class Verdict(Enum):
    """Outcome of a single check."""
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


_VERDICT_STYLE = {
    Verdict.PASS: (Fore.GREEN, "✅ PASS"),
    Verdict.FAIL: (Fore.RED, "❌ FAIL"),
    Verdict.SKIP: (Fore.YELLOW, "⏭️  SKIP"),
}


@dataclass
class CheckResult:
    """Result of one check."""
    name: str
    verdict: Verdict
    detail: str = ""
    duration: float = 0.0
    category: Optional[str] = None
    value: Any = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.verdict == Verdict.PASS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'verdict': self.verdict.value,
            'detail': self.detail,
            'duration': round(self.duration, 3),
            'category': self.category,
        }


def print_header(text: str):
    """Print a formatted header"""
    print(f"\n{Fore.CYAN}{'=' * 60}")
    print(f"{Fore.CYAN}{text.center(60)}")
    print(f"{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")


def print_section(text: str):
    print(f"\n{Fore.YELLOW}▶ {text}{Style.RESET_ALL}")


class TestReport:
    """Collects check results for one suite run."""

    # Keep pytest from collecting this class
    __test__ = False

    def __init__(self, title: str, echo: bool = True):
        self.title = title
        self.echo = echo
        self.results: List[CheckResult] = []
        self.started_at = datetime.now()
        self.finished_at: Optional[datetime] = None
        self._category: Optional[str] = None

    def section(self, name: str):
        """Start a new category; later results are tagged with it."""
        self._category = name
        if self.echo:
            print_section(name)

    def record(self, name: str, verdict: Verdict, detail: str = "", duration: float = 0.0,
               value: Any = None) -> CheckResult:
        result = CheckResult(name, verdict, detail, duration, self._category, value)
        self.results.append(result)

        log = logger.warning if verdict == Verdict.FAIL else logger.info
        log(f"[{self.title}] {verdict.value.upper()} {name}{': ' + detail if detail else ''}")

        if self.echo:
            color, label = _VERDICT_STYLE[verdict]
            print(f"{color}{label}{Style.RESET_ALL} {name}")
            if detail:
                print(f"   {color}{detail}{Style.RESET_ALL}")
        return result

    def passed(self, name: str, detail: str = "", **kwargs) -> CheckResult:
        return self.record(name, Verdict.PASS, detail, **kwargs)

    def failed(self, name: str, detail: str = "", **kwargs) -> CheckResult:
        return self.record(name, Verdict.FAIL, detail, **kwargs)

    def skipped(self, name: str, detail: str = "", **kwargs) -> CheckResult:
        return self.record(name, Verdict.SKIP, detail, **kwargs)

    def check(self, name: str, fn: Callable[[], Any]) -> CheckResult:
        """Run ``fn`` and record its outcome.

        ``fn`` may return a truthy/falsy value or an ``(ok, detail)`` tuple.
        Raising ``SkipCheck`` records a SKIP; any other exception is a FAIL.
        """
        start = time.monotonic()
        try:
            value = fn()
        except SkipCheck as e:
            return self.skipped(name, str(e), duration=time.monotonic() - start)
        except Exception as e:
            logger.debug(f"Check '{name}' raised", exc_info=True)
            return self.failed(name, f"{type(e).__name__}: {e}", duration=time.monotonic() - start)

        duration = time.monotonic() - start
        if isinstance(value, tuple) and len(value) == 2:
            ok, detail = value
            return self.record(name, Verdict.PASS if ok else Verdict.FAIL, str(detail or ""),
                               duration, value=ok)
        if value:
            return self.passed(name, duration=duration, value=value)
        return self.failed(name, "check returned a falsy result", duration=duration, value=value)

    def extend(self, other: "TestReport"):
        """Merge another report's results into this one."""
        self.results.extend(other.results)

    # Accounting

    def count(self, verdict: Verdict) -> int:
        return sum(1 for r in self.results if r.verdict == verdict)

    @property
    def pass_count(self) -> int:
        return self.count(Verdict.PASS)

    @property
    def fail_count(self) -> int:
        return self.count(Verdict.FAIL)

    @property
    def skip_count(self) -> int:
        return self.count(Verdict.SKIP)

    @property
    def executed(self) -> int:
        return self.pass_count + self.fail_count

    @property
    def pass_rate(self) -> float:
        if not self.executed:
            return 0.0
        return self.pass_count / self.executed

    def succeeded(self, threshold: float = 0.8) -> bool:
        return self.executed > 0 and self.pass_rate >= threshold

    def exit_code(self, threshold: float = 0.8) -> int:
        return 0 if self.succeeded(threshold) else 1

    def failures(self) -> List[CheckResult]:
        return [r for r in self.results if r.verdict == Verdict.FAIL]

    # Output

    def finish(self) -> "TestReport":
        self.finished_at = datetime.now()
        return self

    def to_dict(self) -> Dict[str, Any]:
        finished = self.finished_at or datetime.now()
        return {
            'title': self.title,
            'started_at': self.started_at.isoformat(),
            'finished_at': finished.isoformat(),
            'duration_seconds': round((finished - self.started_at).total_seconds(), 3),
            'summary': {
                'total': len(self.results),
                'passed': self.pass_count,
                'failed': self.fail_count,
                'skipped': self.skip_count,
                'pass_rate': round(self.pass_rate, 4),
            },
            'results': [r.to_dict() for r in self.results],
        }

    def write_json(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Report saved to {path}")
        return path

    def print_summary(self, threshold: float = 0.8):
        print_header(f"{self.title} - SUMMARY")
        print(f"Total checks: {len(self.results)}")
        print(f"{Fore.GREEN}Passed: {self.pass_count}{Style.RESET_ALL}")
        print(f"{Fore.RED}Failed: {self.fail_count}{Style.RESET_ALL}")
        print(f"{Fore.YELLOW}Skipped: {self.skip_count}{Style.RESET_ALL}")
        print(f"Pass rate: {self.pass_rate * 100:.1f}% (threshold {threshold * 100:.0f}%)")

        failures = self.failures()
        if failures:
            print(f"\n{Fore.RED}Failed checks:{Style.RESET_ALL}")
            for result in failures:
                print(f"  - {result.name}: {result.detail}")

        if self.succeeded(threshold):
            print(f"\n{Fore.GREEN}🎉 Suite passed{Style.RESET_ALL}")
        else:
            print(f"\n{Fore.RED}⚠️  Suite below threshold{Style.RESET_ALL}")
