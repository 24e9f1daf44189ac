"""ComplianceAnalyzerによる解析パイプライン全体のテスト。"""

import time
from pathlib import Path
from tempfile import TemporaryDirectory
from textwrap import dedent
from typing import Dict, Optional

from factory_audit.analyzer.source_model_builder import SourceModelBuilder
from factory_audit.config import Config
from factory_audit.main import ComplianceAnalyzer
from factory_audit.models.report import ComplianceReport
from factory_audit.models.role import Role
from factory_audit.models.violation import Severity
from factory_audit.reporting import ReportFormatter


def write_sources(root: Path, files: Dict[str, str]) -> None:
    for rel_path, source in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(source), encoding="utf-8")


def analyze(files: Dict[str, str], config: Optional[Config] = None, **kwargs) -> ComplianceReport:
    with TemporaryDirectory() as tmpdir:
        write_sources(Path(tmpdir), files)
        return ComplianceAnalyzer(config or Config()).analyze(tmpdir, **kwargs)


def compliant_service(name: str) -> str:
    """コンストラクタとマーカー付きファクトリを持つ準拠ソース。"""
    return f"""\
        package app

        type {name}Repository struct {{
        	db *sql.DB
        }}

        func New{name}Repository(db *sql.DB) *{name}Repository {{
        	return &{name}Repository{{db: db}}
        }}

        type {name}Service struct {{
        	repo   *{name}Repository
        	logger *log.Logger
        }}

        func New{name}Service(repo *{name}Repository, logger *log.Logger) *{name}Service {{
        	return &{name}Service{{repo: repo, logger: logger}}
        }}

        // coverage:ignore
        func New{name}ServiceForProduction(db *sql.DB, logger *log.Logger) *{name}Service {{
        	repo := New{name}Repository(db)
        	return New{name}Service(repo, logger)
        }}
        """


SERVICES = ["User", "Order", "Invoice", "Payment", "Audit", "Session", "Catalog"]


class TestGoldenScenarios:
    """代表的な入力に対する解析結果のテスト。"""

    def test_factory_with_logic_and_no_constructor(self):
        """分岐を持ちコンストラクタのないファクトリのテスト。"""
        report = analyze({"cache.go": """\
            package app

            type Config struct {
            	Debug bool
            }

            func NewCacheForProduction(cfg Config) *Cache {
            	if cfg.Debug {
            		return NewDebugCache()
            	}
            	return NewLRUCache(128)
            }
            """})
        titles = [v.message.split(":")[0] for v in report.violations if v.severity is Severity.CRITICAL]
        assert report.severity_counts[Severity.CRITICAL] >= 2
        assert "business logic in factory" in titles
        assert "missing primary constructor" in titles
        assert report.score < 50
        assert report.factories_compliant == 0

    def test_seven_compliant_factories(self):
        """準拠したファクトリ7つで違反なし・100点になることのテスト。"""
        files = {f"{name.lower()}.go": compliant_service(name) for name in SERVICES}
        report = analyze(files)

        assert report.violations == []
        assert report.score == 100.0
        assert report.factories_total == 7
        assert report.factories_compliant == 7
        assert all(entry.primary_constructor for entry in report.factories)

    def test_test_file_calls_factory(self):
        """テストからのファクトリ呼び出しが呼び出し側に記録されることのテスト。"""
        report = analyze({
            "user.go": compliant_service("User"),
            "user_test.go": """\
                package app

                import "testing"

                func TestUserService(t *testing.T) {
                	svc := NewUserServiceForProduction(nil, nil)
                	if svc == nil {
                		t.Fatal("nil service")
                	}
                }
                """,
        })
        usages = [v for v in report.violations if v.rule_id == "FAC005"]
        assert len(usages) == 1
        assert usages[0].message.startswith("test uses production factory")
        assert usages[0].path == "user_test.go"
        assert usages[0].line == 6

    def test_unparseable_file_is_isolated(self):
        """パースできないファイルが他のファイルの解析を妨げないことのテスト。"""
        files = {f"svc{i}.go": compliant_service(f"Svc{i}") for i in range(9)}
        files["broken.go"] = "package app\n\nfunc Broken( {\n"
        report = analyze(files)

        assert len(report.parse_failures) == 1
        assert report.parse_failures[0].path == "broken.go"
        assert report.files_analyzed == 9
        assert report.partial is False
        assert report.score == 100.0

    def test_decision_function_is_exempt(self):
        """ループとswitchを持つDecisionFunctionは違反を生まないことのテスト。"""
        report = analyze({"cache.go": """\
            package app

            type Cache struct {
            	size int
            }

            func NewCache(size int) *Cache {
            	return &Cache{size: size}
            }

            func buildCacheSize(cfg Config) int {
            	total := 0
            	for _, s := range cfg.Sizes {
            		total += s
            	}
            	switch cfg.Mode {
            	case "large":
            		return total * 2
            	default:
            		return total
            	}
            }

            // coverage:ignore
            func NewCacheForProduction(cfg Config) *Cache {
            	return NewCache(buildCacheSize(cfg))
            }
            """})
        roles = {entry.name: entry.role for entry in report.functions}
        assert roles["buildCacheSize"] is Role.DECISION_FUNCTION
        assert report.violations == []
        assert report.score == 100.0


class TestProperties:
    """解析全体の性質のテスト。"""

    def test_idempotent(self):
        """同じ入力に対して同じレポートが出力されることのテスト。"""
        files = {f"{name.lower()}.go": compliant_service(name) for name in SERVICES[:3]}
        files["extra.go"] = """\
            package app

            func NewExtraForProduction(cfg Config) *Extra {
            	if cfg.On {
            		warm()
            	}
            	return NewExtra()
            }
            """
        formatter = ReportFormatter("structured")
        with TemporaryDirectory() as tmpdir:
            write_sources(Path(tmpdir), files)
            first = formatter.render(ComplianceAnalyzer(Config()).analyze(tmpdir))
            second = formatter.render(ComplianceAnalyzer(Config(concurrency_limit=1)).analyze(tmpdir))
        assert first == second

    def test_monotonic(self):
        """重大な違反を1件追加してもスコアが上がらないことのテスト。"""
        files = {f"{name.lower()}.go": compliant_service(name) for name in SERVICES[:2]}
        files["pool.go"] = """\
            package app

            type Pool struct {
            	size int
            }

            func NewPool(size int) *Pool {
            	return &Pool{size: size}
            }

            // coverage:ignore
            func NewPoolForProduction(cfg Config) *Pool {
            	return NewPool(cfg.Size)
            }
            """
        before = analyze(files)

        files["pool.go"] = files["pool.go"].replace(
            "return NewPool(cfg.Size)",
            "warm(cfg)\n            \treturn NewPool(cfg.Size)"
        )
        after = analyze(files)

        assert after.severity_counts[Severity.CRITICAL] == before.severity_counts[Severity.CRITICAL] + 1
        assert after.score <= before.score
        assert before.score == 100.0

    def test_paths_are_relative(self):
        """レポートのパスが解析ルートからの相対パスであることのテスト。"""
        report = analyze({"internal/app/user.go": compliant_service("User")})
        assert {entry.path for entry in report.functions} == {"internal/app/user.go"}


class SlowBuilder(SourceModelBuilder):
    """キャンセルされるまで待機するビルダー。"""

    def build(self, path, content, deadline=None, cancel_event=None):
        cancel_event.wait(5)
        return super().build(path, content, deadline=deadline, cancel_event=cancel_event)


class SleepyBuilder(SourceModelBuilder):
    """ファイルごとの期限を超過するビルダー。"""

    def build(self, path, content, deadline=None, cancel_event=None):
        time.sleep(0.05)
        return super().build(path, content, deadline=deadline, cancel_event=cancel_event)


class TestDeadlines:
    """実行期限とファイルごとのタイムアウトのテスト。"""

    def test_run_deadline_marks_partial(self):
        """実行期限の超過で部分的なレポートになることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            write_sources(Path(tmpdir), {"user.go": compliant_service("User")})
            analyzer = ComplianceAnalyzer(Config())
            analyzer.source_loader.builder = SlowBuilder()
            report = analyzer.analyze(tmpdir, deadline_ms=50)

        assert report.partial is True
        assert report.files_analyzed == 0
        assert report.parse_failures == []

    def test_per_file_timeout_is_parse_failure(self):
        """ファイルごとのタイムアウトはパース失敗として記録されることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            write_sources(Path(tmpdir), {
                "a.go": compliant_service("A"),
                "b.go": compliant_service("B"),
            })
            analyzer = ComplianceAnalyzer(Config(per_file_timeout_ms=1))
            analyzer.source_loader.builder = SleepyBuilder()
            report = analyzer.analyze(tmpdir)

        assert [f.path for f in report.parse_failures] == ["a.go", "b.go"]
        assert all("timeout" in f.message for f in report.parse_failures)
        assert report.files_analyzed == 0
        assert report.partial is False
