import logging
import subprocess
import time

from .db import (
    init_db,
    insert_case,
    insert_output,
    insert_provider,
    insert_run,
    insert_score,
)
from .pack_loader import CaseConfig, PackConfig
from .providers.base import ApiProvider, Failure

logger = logging.getLogger(__name__)


def _get_git_sha() -> str | None:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass
    return None


def render_prompt(case: CaseConfig) -> str:
    if not case.vars:
        return case.prompt
    try:
        return case.prompt.format(**case.vars)
    except (KeyError, IndexError, ValueError):
        logger.warning("Case %s: template does not render with its vars, using it verbatim", case.id)
        return case.prompt


def _grade(pack: PackConfig, output: str, case: CaseConfig) -> tuple[float, str | None, str | None, dict | None]:
    if not (pack.grader and hasattr(pack.grader, "grade")):
        return 0.0, None, None, None
    grade_result = pack.grader.grade(
        model_output=output,
        expected=case.expected,
        metadata=case.vars,
    )
    if isinstance(grade_result, dict):
        return (
            grade_result.get("score", 0.0),
            grade_result.get("label"),
            grade_result.get("reason"),
            grade_result.get("details"),
        )
    return float(grade_result), None, None, None


def run_eval(
    pack: PackConfig,
    providers: list[ApiProvider],
    n: int = 1,
    db_path: str = "results.sqlite",
) -> list[str]:
    conn = init_db(db_path)
    git_sha = _get_git_sha()
    run_ids: list[str] = []

    try:
        for provider in providers:
            provider_id = provider.identify()
            insert_provider(conn, provider_id=provider_id, label=provider.describe())

            run_id = insert_run(
                conn,
                pack_id=pack.id,
                provider_id=provider_id,
                git_sha=git_sha,
            )
            run_ids.append(run_id)

            total = len(pack.cases) * n
            completed = 0

            print(f"--- Provider: {provider_id} | Run: {run_id[:8]} ---")

            for case in pack.cases:
                case_id = insert_case(
                    conn,
                    pack_id=pack.id,
                    case_id=f"{pack.id}:{case.id}",
                    case_vars=case.vars,
                    expected=case.expected,
                )
                prompt = render_prompt(case)

                for rep in range(n):
                    start = time.perf_counter()
                    result = provider.invoke(prompt)
                    latency_ms = (time.perf_counter() - start) * 1000.0

                    if isinstance(result, Failure):
                        output_id = insert_output(
                            conn,
                            run_id=run_id,
                            case_id=case_id,
                            prompt=prompt,
                            error=result.error,
                            latency_ms=latency_ms,
                        )
                        score, label, reason, details = 0.0, "ERROR", result.error, None
                        logger.info("Case %s failed on %s: %s", case.id, provider_id, result.error)
                    else:
                        output_id = insert_output(
                            conn,
                            run_id=run_id,
                            case_id=case_id,
                            prompt=prompt,
                            output_text=result.output,
                            latency_ms=latency_ms,
                        )
                        score, label, reason, details = _grade(pack, result.output, case)

                    insert_score(
                        conn,
                        output_id=output_id,
                        score=score,
                        label=label,
                        reason=reason,
                        details=details,
                    )

                    completed += 1
                    status = " ERROR" if isinstance(result, Failure) else ""
                    print(
                        f"  [{completed}/{total}] case={case.id} rep={rep + 1}/{n} "
                        f"score={score:.2f} latency={latency_ms:.0f}ms{status}"
                    )
    finally:
        conn.close()

    return run_ids
