"""
Unit tests for config module.
"""

import json

import pytest

from stackdash import config
from stackdash.config import TaskSpec


class TestLoadConfig:
    """Test YAML settings file loading."""

    def test_returns_empty_dict_when_no_file(self):
        assert config.load_config() == {}

    def test_loads_valid_yaml(self, isolated_config_path):
        isolated_config_path.parent.mkdir(parents=True)
        isolated_config_path.write_text("max_log_lines: 50\ndocker_bin: podman\n")

        result = config.load_config()

        assert result == {"max_log_lines": 50, "docker_bin": "podman"}

    def test_returns_empty_dict_on_invalid_yaml(self, isolated_config_path):
        isolated_config_path.parent.mkdir(parents=True)
        isolated_config_path.write_text("invalid: yaml: content: [")

        assert config.load_config() == {}

    def test_returns_empty_dict_when_yaml_is_not_dict(self, isolated_config_path):
        isolated_config_path.parent.mkdir(parents=True)
        isolated_config_path.write_text("- item1\n- item2\n")

        assert config.load_config() == {}


class TestFindProjectRoot:
    """Test the upward search for the project directory."""

    def test_finds_compose_file_in_ancestor(self, tmp_path):
        (tmp_path / "docker-compose.yml").write_text("services: {}\n")
        nested = tmp_path / "apps" / "web"
        nested.mkdir(parents=True)

        assert config.find_project_root(nested) == tmp_path

    def test_compose_file_wins_over_closer_package_json(self, tmp_path):
        (tmp_path / "docker-compose.yml").write_text("services: {}\n")
        web = tmp_path / "web"
        web.mkdir()
        (web / "package.json").write_text("{}")

        assert config.find_project_root(web) == tmp_path

    def test_falls_back_to_package_json(self, tmp_path):
        web = tmp_path / "web"
        src = web / "src"
        src.mkdir(parents=True)
        (web / "package.json").write_text("{}")

        assert config.find_project_root(src) == web

    def test_falls_back_to_start_dir(self, tmp_path):
        start = tmp_path / "empty"
        start.mkdir()

        assert config.find_project_root(start) == start


class TestExpandValue:
    """Test ${VAR} and ${VAR:-default} expansion."""

    def test_simple_reference(self):
        assert config.expand_value("URL", "http://${HOST}:80", {"HOST": "db"}) == "http://db:80"

    def test_default_used_when_unset(self):
        assert config.expand_value("PORT", "${MISSING:-5432}", {}) == "5432"

    def test_default_used_when_empty(self):
        assert config.expand_value("PORT", "${EMPTY:-5432}", {"EMPTY": ""}) == "5432"

    def test_unset_without_default_is_empty(self):
        assert config.expand_value("X", "a${MISSING}b", {}) == "ab"

    def test_self_reference_not_expanded(self):
        env = {"PATH": "/usr/bin"}
        assert config.expand_value("PATH", "${PATH:-/bin}", env) == "/bin"


class TestLoadEnv:
    """Test .env / .env.<profile> overlay."""

    def test_base_env_file_does_not_override(self, tmp_path):
        (tmp_path / ".env").write_text("FOO=from_file\nBAR=bar\n")

        env, loaded = config.load_env(tmp_path, None, {"FOO": "from_process"})

        assert env["FOO"] == "from_process"
        assert env["BAR"] == "bar"
        assert loaded == [".env"]

    def test_profile_file_overrides(self, tmp_path):
        (tmp_path / ".env").write_text("FOO=base\n")
        (tmp_path / ".env.staging").write_text("FOO=staging\n")

        env, loaded = config.load_env(tmp_path, "staging", {"FOO": "process"})

        assert env["FOO"] == "staging"
        assert loaded == [".env", ".env.staging"]

    def test_missing_files_are_fine(self, tmp_path):
        env, loaded = config.load_env(tmp_path, "local", {"A": "1"})

        assert env == {"A": "1"}
        assert loaded == []

    def test_chained_expansion(self, tmp_path):
        (tmp_path / ".env").write_text(
            "HOST=localhost\nPORT=${DB_PORT:-5432}\nURL=postgres://${HOST}:${PORT}/app\n"
        )

        env, _ = config.load_env(tmp_path, None, {})

        assert env["URL"] == "postgres://localhost:5432/app"

    def test_does_not_mutate_base_env(self, tmp_path):
        (tmp_path / ".env").write_text("NEW=1\n")
        base = {"A": "1"}

        config.load_env(tmp_path, None, base)

        assert base == {"A": "1"}


class TestProfileKeys:
    """Test profile-suffixed variable lookup."""

    def test_key_for_profile(self):
        assert config.key_for_profile("POST_UP_TASKS", "local") == "POST_UP_TASKS_LOCAL"
        assert config.key_for_profile("POST_UP_TASKS", "my-prof.2") == "POST_UP_TASKS_MY_PROF_2"

    def test_key_for_blank_profile(self):
        assert config.key_for_profile("POST_UP_TASKS", "  ") == "POST_UP_TASKS"

    def test_profile_value_preferred(self):
        env = {"POST_UP_CMD": "base", "POST_UP_CMD_LOCAL": "local"}
        assert config.get_profile_value(env, "POST_UP_CMD", "local") == "local"

    def test_falls_back_to_base_key(self):
        assert config.get_profile_value({"POST_UP_CMD": "base"}, "POST_UP_CMD", "prod") == "base"
        assert config.get_profile_value({}, "POST_UP_CMD", "prod") == ""

    @pytest.mark.parametrize("env,requested,expected", [
        ({}, None, "local"),
        ({"COMPOSE_PROFILE": "dev"}, None, "dev"),
        ({"DOCKER_PROFILE": "prod", "COMPOSE_PROFILE": "dev"}, None, "prod"),
        ({"DOCKER_PROFILE": "prod"}, "cli", "cli"),
        ({"DOCKER_PROFILE": "  "}, None, "local"),
    ])
    def test_resolve_profile(self, env, requested, expected):
        assert config.resolve_profile(env, requested) == expected


class TestParsePostUpTasks:
    """Test the name::command task list format."""

    def test_named_tasks(self):
        raw = "api::npm run api\nworker :: npm run worker\n"
        assert config.parse_post_up_tasks(raw) == [
            TaskSpec("api", "npm run api"),
            TaskSpec("worker", "npm run worker"),
        ]

    def test_comments_and_blank_lines_skipped(self):
        raw = "\n# a comment\n\nseed::make seed\n"
        assert config.parse_post_up_tasks(raw) == [TaskSpec("seed", "make seed")]

    def test_missing_name_defaults_to_task(self):
        assert config.parse_post_up_tasks("::echo hi") == [TaskSpec("task", "echo hi")]

    def test_line_without_separator(self):
        assert config.parse_post_up_tasks("make migrate") == [TaskSpec("task", "make migrate")]

    def test_empty_command_skipped(self):
        assert config.parse_post_up_tasks("api::   ") == []


class TestResolveTasks:
    """Test task discovery from env and package.json."""

    def test_post_up_cmd_fallback(self, tmp_path):
        tasks = config.resolve_tasks({"POST_UP_CMD": "make seed"}, "local", tmp_path)
        assert tasks == [TaskSpec("postup", "make seed")]

    def test_profile_tasks_preferred(self, tmp_path):
        env = {
            "POST_UP_TASKS": "base::echo base",
            "POST_UP_TASKS_LOCAL": "local::echo local",
        }
        assert config.resolve_tasks(env, "local", tmp_path) == [TaskSpec("local", "echo local")]

    def test_merges_package_json_scripts_sorted(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({
            "scripts": {"lint": "eslint .", "dev": "vite", "migrate": "npm run db:migrate"},
        }))
        env = {"POST_UP_TASKS": "migrate::make migrate\nzz::echo last"}

        tasks = config.resolve_tasks(env, "local", tmp_path)

        assert [t.name for t in tasks] == ["dev", "lint", "migrate", "zz"]
        # Profile task wins on a name clash
        assert TaskSpec("migrate", "make migrate") in tasks

    def test_unreadable_package_json_ignored(self, tmp_path):
        (tmp_path / "package.json").write_text("{not json")
        assert config.resolve_tasks({}, "local", tmp_path) == []


class TestBuildConfig:
    """Test full configuration resolution."""

    def test_defaults(self, tmp_path):
        cfg = config.build_config(start_dir=tmp_path, base_env={})

        assert cfg.cwd == tmp_path
        assert cfg.profile == "local"
        assert cfg.max_log_lines == 1200
        assert cfg.refresh_ms == 1000
        assert cfg.refresh_interval == 1.0
        assert cfg.log_tail == 200
        assert cfg.docker_bin == "docker"
        assert cfg.db_container == "supabase-db"
        assert cfg.storage_container == "supabase-storage"
        assert cfg.auto_compose_up is True
        assert cfg.tasks == ()

    def test_child_env_carries_profile(self, tmp_path):
        cfg = config.build_config(profile="staging", start_dir=tmp_path, base_env={"HOME": "/h"})

        assert cfg.env["DOCKER_PROFILE"] == "staging"
        assert cfg.env["COMPOSE_PROFILES"] == "staging"
        assert cfg.env["HOME"] == "/h"
        assert cfg.compose_profile == "staging"

    def test_env_is_read_only(self, tmp_path):
        cfg = config.build_config(start_dir=tmp_path, base_env={})
        with pytest.raises(TypeError):
            cfg.env["X"] = "1"

    def test_profile_chosen_by_base_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("DOCKER_PROFILE=dev\n")
        (tmp_path / ".env.dev").write_text("POST_UP_TASKS=api::npm run api\n")

        cfg = config.build_config(start_dir=tmp_path, base_env={})

        assert cfg.profile == "dev"
        assert cfg.task_names == ["api"]
        assert cfg.loaded_env_files == (".env", ".env.dev")

    def test_precedence(self, tmp_path, isolated_config_path):
        isolated_config_path.parent.mkdir(parents=True)
        isolated_config_path.write_text(
            "max_log_lines: 300\nrefresh_ms: 700\nlog_tail: 20\nauto_compose_up: false\n"
        )
        env = {"MAX_LOG_LINES": "400"}

        cfg = config.build_config(
            start_dir=tmp_path,
            base_env=env,
            overrides={"refresh_ms": 250, "max_log_lines": None},
        )

        assert cfg.refresh_ms == 250          # override
        assert cfg.max_log_lines == 400       # env over file
        assert cfg.log_tail == 20             # file over default
        assert cfg.auto_compose_up is False   # file

    def test_invalid_numbers_fall_back(self, tmp_path):
        cfg = config.build_config(start_dir=tmp_path, base_env={"MAX_LOG_LINES": "lots", "REFRESH_MS": "0"})

        assert cfg.max_log_lines == 1200
        assert cfg.refresh_ms == 1000

    def test_no_compose_prompt_override(self, tmp_path):
        cfg = config.build_config(start_dir=tmp_path, base_env={}, overrides={"auto_compose_up": False})
        assert cfg.auto_compose_up is False
