"""RoleClassifierと分類述語のテスト。"""

from textwrap import dedent
from typing import Dict, Optional

import pytest

from factory_audit.analyzer.function_index import FunctionIndex
from factory_audit.analyzer.source_model_builder import SourceModelBuilder
from factory_audit.classifier import RoleClassifier
from factory_audit.classifier.predicates import is_strict_superset
from factory_audit.config import Config
from factory_audit.models.role import Role


@pytest.fixture(scope="module")
def builder():
    return SourceModelBuilder()


def classify(
    builder,
    sources: Dict[str, str],
    config: Optional[Config] = None,
    rules=None
) -> Dict[str, Role]:
    """ソース群を分類し、関数名から役割へのマッピングを返す。"""
    units = [builder.build_string(path, dedent(src)) for path, src in sources.items()]
    index = FunctionIndex(units)
    classifier = RoleClassifier(config or Config(), index, rules=rules)
    roles = classifier.classify_all(index.functions)
    return {f.qualified_name: roles[f.key] for f in index.functions}


SERVICE = """\
    package app

    type Service struct {
    	repo   Repository
    	logger *Logger
    }

    func NewService(repo Repository, logger *Logger) *Service {
    	return &Service{repo: repo, logger: logger}
    }
    """


class TestProductionFactory:
    """ProductionFactoryの判定テスト。"""

    def test_name_suffix(self, builder):
        """命名規約に一致する関数はファクトリになることのテスト。"""
        roles = classify(builder, {"wire.go": """\
            package app

            func NewServiceForProduction(db *sql.DB) *Service {
            	return NewService(NewRepository(db), NewLogger())
            }
            """})
        assert roles["NewServiceForProduction"] is Role.PRODUCTION_FACTORY

    def test_suffix_alone_is_not_a_factory(self, builder):
        """接尾辞そのものの名前はファクトリではないことのテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            func ForProduction() {}
            """})
        assert roles["ForProduction"] is Role.UNCLASSIFIED

    def test_name_beats_structure(self, builder):
        """命名規約は構造的な一致より優先されることのテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            type Cache struct {
            	size int
            }

            func NewCacheForProduction(size int) *Cache {
            	return &Cache{size: size}
            }
            """})
        assert roles["NewCacheForProduction"] is Role.PRODUCTION_FACTORY

    def test_structural_factory(self, builder):
        """命名規約なしで構造的にファクトリと判定されるテスト。"""
        roles = classify(builder, {"server.go": """\
            package app

            type Server struct {
            	cfg Config
            	db  *DB
            }

            func NewServerWith(cfg Config, db *DB) *Server {
            	return &Server{cfg: cfg, db: db}
            }

            func NewServer(cfg Config) *Server {
            	db := OpenDB(cfg.DSN)
            	return NewServerWith(cfg, db)
            }
            """})
        assert roles["NewServerWith"] is Role.PRIMARY_CONSTRUCTOR
        assert roles["NewServer"] is Role.PRODUCTION_FACTORY

    def test_structural_factory_across_packages(self, builder):
        """別パッケージのコンストラクタに委譲する構造的ファクトリのテスト。"""
        roles = classify(builder, {
            "server/server.go": """\
                package server

                type Server struct {
                	cfg Config
                	db  *DB
                }

                func NewServerWith(cfg Config, db *DB) *Server {
                	return &Server{cfg: cfg, db: db}
                }
                """,
            "cmd/wire.go": """\
                package main

                func NewServer(cfg server.Config) *server.Server {
                	db := server.OpenDB(cfg.DSN)
                	return server.NewServerWith(cfg, db)
                }
                """,
        })
        assert roles["NewServerWith"] is Role.PRIMARY_CONSTRUCTOR
        assert roles["NewServer"] is Role.PRODUCTION_FACTORY

    def test_structural_requires_strict_superset(self, builder):
        """パラメータ型が真の上位集合でなければ構造的ファクトリではないテスト。"""
        roles = classify(builder, {"server.go": """\
            package app

            func NewServerWith(cfg Config) *Server {
            	return build(cfg)
            }

            func NewServer(cfg Config) *Server {
            	return NewServerWith(cfg)
            }
            """})
        assert roles["NewServer"] is Role.UNCLASSIFIED

    def test_structural_rejects_logic(self, builder):
        """本体に分岐がある場合は構造的ファクトリではないテスト。"""
        roles = classify(builder, {"server.go": """\
            package app

            func NewServerWith(cfg Config, db *DB) *Server {
            	return &Server{cfg: cfg, db: db}
            }

            func NewServer(cfg Config) *Server {
            	db := OpenDB(cfg.DSN)
            	if db == nil {
            		panic("no db")
            	}
            	return NewServerWith(cfg, db)
            }
            """})
        assert roles["NewServer"] is Role.UNCLASSIFIED

    def test_custom_suffix(self, builder):
        """設定した接尾辞で判定されることのテスト。"""
        config = Config(factory_suffix="ForProd")
        roles = classify(builder, {"a.go": """\
            package app

            func NewAForProd() *A { return NewA() }
            func NewBForProduction() *B { return NewB() }
            """}, config=config)
        assert roles["NewAForProd"] is Role.PRODUCTION_FACTORY
        assert roles["NewBForProduction"] is Role.UNCLASSIFIED


class TestPrimaryConstructor:
    """PrimaryConstructorの判定テスト。"""

    def test_keyed_fields(self, builder):
        """全パラメータを1対1でフィールドに渡す関数のテスト。"""
        roles = classify(builder, {"service.go": SERVICE})
        assert roles["NewService"] is Role.PRIMARY_CONSTRUCTOR

    def test_with_nil_error(self, builder):
        """(T, error) を返す場合のnilは許可されることのテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            func NewClient(addr string) (*Client, error) {
            	return &Client{addr: addr}, nil
            }
            """})
        assert roles["NewClient"] is Role.PRIMARY_CONSTRUCTOR

    def test_positional_fields(self, builder):
        """位置指定の複合リテラルのテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            type Pair struct {
            	left  int
            	right int
            }

            func NewPair(left int, right int) Pair {
            	return Pair{left, right}
            }
            """})
        assert roles["NewPair"] is Role.PRIMARY_CONSTRUCTOR

    @pytest.mark.parametrize("body", [
        # 内部で依存を生成している
        "return &Service{repo: NewRepository(), logger: logger}",
        # パラメータを使っていない
        "return &Service{repo: defaultRepo, logger: logger}",
    ])
    def test_internal_wiring_is_not_primary(self, builder, body):
        """内部で配線を行う関数はプライマリコンストラクタではないテスト。"""
        roles = classify(builder, {"a.go": f"""\
            package app

            func NewService(repo Repository, logger *Logger) *Service {{
            	{body}
            }}
            """})
        assert roles["NewService"] is Role.UNCLASSIFIED

    def test_extra_statement_is_not_primary(self, builder):
        """return以外の文がある場合のテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            func NewService(repo Repository) *Service {
            	log.Println("creating")
            	return &Service{repo: repo}
            }
            """})
        assert roles["NewService"] is Role.UNCLASSIFIED

    def test_missing_struct_field(self, builder):
        """構造体の宣言が既知でフィールドが不足している場合のテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            type Service struct {
            	repo   Repository
            	logger *Logger
            }

            func NewService(repo Repository) *Service {
            	return &Service{repo: repo}
            }
            """})
        assert roles["NewService"] is Role.UNCLASSIFIED

    def test_type_mismatch(self, builder):
        """戻り値型と異なる型を構築する場合のテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            func NewService(repo Repository) *Service {
            	return &Other{repo: repo}
            }
            """})
        assert roles["NewService"] is Role.UNCLASSIFIED


class TestDecisionFunction:
    """DecisionFunctionの判定テスト。"""

    def test_prefix_with_conditional(self, builder):
        """接頭辞と分岐を持つ関数のテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            func buildTimeout(cfg Config) int {
            	if cfg.Fast {
            		return 1
            	}
            	return 5
            }
            """})
        assert roles["buildTimeout"] is Role.DECISION_FUNCTION

    def test_prefix_with_loop(self, builder):
        """接頭辞とループを持つ関数のテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            func buildNames(items []Item) []string {
            	names := make([]string, 0)
            	for _, item := range items {
            		names = append(names, item.Name)
            	}
            	return names
            }
            """})
        assert roles["buildNames"] is Role.DECISION_FUNCTION

    def test_prefix_without_logic(self, builder):
        """分岐のない関数はDecisionFunctionではないテスト。"""
        roles = classify(builder, {"a.go": """\
            package app

            func buildName() string {
            	return "svc"
            }
            """})
        assert roles["buildName"] is Role.UNCLASSIFIED


class TestClassifier:
    """RoleClassifier全体のテスト。"""

    def test_every_function_has_one_role(self, builder):
        """全関数にちょうど1つの役割が割り当てられることのテスト。"""
        units = [
            builder.build_string("service.go", dedent(SERVICE)),
            builder.build_string("wire.go", dedent("""\
                package app

                func NewServiceForProduction() *Service {
                	return NewService(NewRepository(), NewLogger())
                }

                func (s *Service) Run() {}

                func helper() {}
                """)),
        ]
        index = FunctionIndex(units)
        roles = RoleClassifier(Config(), index).classify_all(index.functions)

        assert len(roles) == len(index.functions) == 4
        assert all(isinstance(role, Role) for role in roles.values())
        assert list(roles.values()).count(Role.PRIMARY_CONSTRUCTOR) == 1
        assert list(roles.values()).count(Role.PRODUCTION_FACTORY) == 1

    def test_custom_rules(self, builder):
        """述語を差し替えられることのテスト。"""
        rules = [(Role.DECISION_FUNCTION, lambda func, context: func.name == "helper")]
        roles = classify(builder, {"a.go": """\
            package app

            func helper() {}
            func NewAForProduction() *A { return NewA() }
            """}, rules=rules)
        assert roles["helper"] is Role.DECISION_FUNCTION
        assert roles["NewAForProduction"] is Role.UNCLASSIFIED

    def test_classification_is_repeatable(self, builder):
        """同じ入力からは同じ分類結果が得られることのテスト。"""
        first = classify(builder, {"service.go": SERVICE})
        second = classify(builder, {"service.go": SERVICE})
        assert first == second


class TestStrictSuperset:
    """型の多重集合比較のテスト。"""

    def test_strict_superset(self):
        """真の上位集合の判定テスト。"""
        assert is_strict_superset(["Config", "*DB"], ["Config"])
        assert is_strict_superset(["int", "int"], ["int"])
        assert not is_strict_superset(["Config"], ["Config"])
        assert not is_strict_superset(["int", "*DB"], ["int", "int"])
