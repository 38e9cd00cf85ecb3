"""
Tests for ecosystem detection from indicator files.
"""

from runtimekit.core.models.package import Ecosystem
from runtimekit.core.models.project import DetectionRule, DetectionSettings, FrameworkBonus
from runtimekit.core.services.detection import detect_ecosystems, primary_ecosystem


def touch(root, *names):
    for name in names:
        (root / name).write_text("")


class TestDetectEcosystems:
    def test_empty_directory(self, tmp_path):
        assert detect_ecosystems(tmp_path) == []
        assert primary_ecosystem(tmp_path) is None

    def test_single_indicator(self, tmp_path):
        touch(tmp_path, "go.mod")
        [detection] = detect_ecosystems(tmp_path)
        assert detection.ecosystem is Ecosystem.GO
        assert detection.confidence == 0.9
        assert detection.files == ("go.mod",)

    def test_extra_indicator_files_add_confidence(self, tmp_path):
        touch(tmp_path, "requirements.txt", "pyproject.toml", "package.json")
        detections = detect_ecosystems(tmp_path)
        assert [d.ecosystem for d in detections] == [Ecosystem.PYTHON, Ecosystem.NODEJS]
        assert detections[0].confidence == 0.95

    def test_ties_order_by_ecosystem_tag(self, tmp_path):
        touch(tmp_path, "package.json", "go.mod")
        assert [d.ecosystem for d in detect_ecosystems(tmp_path)] == [Ecosystem.GO, Ecosystem.NODEJS]

    def test_framework_bonus(self, tmp_path):
        touch(tmp_path, "package.json", "requirements.txt", "setup.py")
        declared = {Ecosystem.NODEJS: ["react-dom", "lodash"], Ecosystem.PYTHON: []}

        without = primary_ecosystem(tmp_path)
        with_bonus = detect_ecosystems(tmp_path, declared=lambda eco: declared.get(eco, []))

        assert without is Ecosystem.PYTHON
        assert with_bonus[0].ecosystem is Ecosystem.NODEJS
        assert with_bonus[0].confidence == 1.0

    def test_confidence_is_capped(self, tmp_path):
        touch(tmp_path, "a", "b", "c")
        settings = DetectionSettings(
            rules=[DetectionRule(ecosystem="python", files=["a", "b", "c"], confidence=0.95)],
            bonuses=[FrameworkBonus(ecosystem="python", frameworks=["django"], bonus=0.5)],
        )
        [detection] = detect_ecosystems(tmp_path, settings, declared=lambda eco: ["Django"])
        assert detection.confidence == 1.0

    def test_custom_rules(self, tmp_path):
        touch(tmp_path, "Pipfile")
        settings = DetectionSettings(
            rules=[DetectionRule(ecosystem="py", files=["Pipfile"], confidence=0.7)],
            bonuses=[],
        )
        assert primary_ecosystem(tmp_path, settings) is Ecosystem.PYTHON

    def test_directories_are_not_indicators(self, tmp_path):
        (tmp_path / "go.mod").mkdir()
        assert detect_ecosystems(tmp_path) == []
