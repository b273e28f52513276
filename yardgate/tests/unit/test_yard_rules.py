"""
Unit tests for yard status rules.

Tests return classification, free-time deadlines, dashboard counters
and inventory derivation.
"""

import pytest

from yardgate.domain.models import (
    ContainerRecord,
    DeadlineStatus,
    ReturnStatus,
)
from yardgate.domain.services import (
    ContainerStatsCalculator,
    ContainerStatusClassifier,
    FreeTimeEvaluator,
    InventoryGenerator,
    is_returned,
)


class TestContainerStatusClassifier:
    """Tests for ContainerStatusClassifier."""

    @pytest.fixture
    def classifier(self) -> ContainerStatusClassifier:
        """Create classifier instance."""
        return ContainerStatusClassifier()

    @pytest.mark.parametrize("exit_date, status, expected", [
        ("15/03/24", "", True),
        ("EMPATIO", "", False),
        ("", "RIC OK", True),
        ("", "Aguardando Devolução", False),
    ])
    def test_reference_cases(self, exit_date: str, status: str, expected: bool):
        """Documented examples of the returned rule."""
        assert is_returned(exit_date, status) is expected

    def test_exit_date_is_authoritative(self, classifier: ContainerStatusClassifier):
        """A real exit date wins over a pending status."""
        assert classifier.classify("20/03/24", "Aguardando Devolução") == ReturnStatus.RETURNED

    def test_sentinel_ignores_case_and_spaces(self, classifier: ContainerStatusClassifier):
        """' empatio ' is still the in-yard sentinel."""
        assert classifier.classify(" empatio ", "") == ReturnStatus.IN_USE

    @pytest.mark.parametrize("status", ["Devolvido", "RIC OK", "devolvido ao armador"])
    def test_returned_keywords(self, classifier: ContainerStatusClassifier, status: str):
        """'ok' and 'devolvido' mean returned."""
        assert classifier.classify("", status) == ReturnStatus.RETURNED

    @pytest.mark.parametrize("status", ["Aguardando Devolução", "VERIFICAR RIC"])
    def test_pending_keywords(self, classifier: ContainerStatusClassifier, status: str):
        """'aguardando' and 'verificar' mean pending."""
        assert classifier.classify("", status) == ReturnStatus.PENDING

    @pytest.mark.parametrize("exit_date, status", [
        ("", ""),
        (None, None),
        ("EMPATIO", "Em Operação (Entrada)"),
        ("", "Baixa Pátio SJP"),
    ])
    def test_in_use_default(
        self,
        classifier: ContainerStatusClassifier,
        exit_date: str | None,
        status: str | None,
    ):
        """Nothing recognizable means the container is still in use."""
        assert classifier.classify(exit_date, status) == ReturnStatus.IN_USE
        assert classifier.is_returned(exit_date, status) is False


class TestFreeTimeEvaluator:
    """Tests for FreeTimeEvaluator."""

    @pytest.fixture
    def evaluator(self) -> FreeTimeEvaluator:
        """Create evaluator with the default 3-day warning."""
        return FreeTimeEvaluator()

    @pytest.mark.parametrize("remaining, expected", [
        (-5, DeadlineStatus.EXPIRED),
        (0, DeadlineStatus.EXPIRED),
        (1, DeadlineStatus.EXPIRING),
        (3, DeadlineStatus.EXPIRING),
        (4, DeadlineStatus.OK),
        (30, DeadlineStatus.OK),
    ])
    def test_thresholds(self, evaluator: FreeTimeEvaluator, remaining: int, expected):
        """Expired at zero, expiring within the warning window."""
        assert evaluator.classify(remaining) == expected

    def test_custom_warning_window(self):
        """Warning window is configurable."""
        assert FreeTimeEvaluator(warning_days=7).classify(6) == DeadlineStatus.EXPIRING

    def test_returned_container_never_expired(self, evaluator: FreeTimeEvaluator):
        """Free time stops mattering once the container is back."""
        record = ContainerRecord(
            container_number="CSQU3054383",
            exit_date="15/03/24",
            remaining_days=-10,
        )

        assert evaluator.classify_record(record) == DeadlineStatus.OK

    def test_summarize(self, evaluator: FreeTimeEvaluator):
        """Counts expired and expiring containers."""
        records = [
            ContainerRecord(container_number="A", remaining_days=0),
            ContainerRecord(container_number="B", remaining_days=-2),
            ContainerRecord(container_number="C", remaining_days=2),
            ContainerRecord(container_number="D", remaining_days=15),
            ContainerRecord(container_number="E", remaining_days=-1, status="RIC OK"),
        ]

        summary = evaluator.summarize(records)

        assert summary.expired == 2
        assert summary.expiring == 1
        assert summary.total_alerts == 3
        assert summary.is_critical is True


class TestContainerStatsCalculator:
    """Tests for ContainerStatsCalculator."""

    def test_compute(self):
        """Counters over a mixed container set."""
        records = [
            ContainerRecord(container_number="A", armador="MSC", exit_date="10/03/24",
                            return_depot="Santos Brasil"),
            ContainerRecord(container_number="B", armador="MSC", status="Aguardando Devolução",
                            remaining_days=5, return_depot="Santos Brasil"),
            ContainerRecord(container_number="C", armador="Maersk", remaining_days=0,
                            return_depot="-"),
            ContainerRecord(container_number="D", armador="", remaining_days=10),
        ]

        stats = ContainerStatsCalculator().compute(records)

        assert stats.total == 4
        assert stats.returned == 1
        assert stats.pending == 1
        assert stats.expired == 1
        assert stats.by_armador == {"MSC": 2, "Maersk": 1, "N/A": 1}
        assert stats.by_depot == {"Santos Brasil": 2, "Não especificado": 1}

    def test_empty(self):
        """No containers, all zeros."""
        stats = ContainerStatsCalculator().compute([])

        assert stats.total == 0
        assert stats.by_armador == {}
        assert stats.by_depot == {}


class TestInventoryGenerator:
    """Tests for InventoryGenerator."""

    @pytest.fixture
    def generator(self) -> InventoryGenerator:
        """Create generator instance."""
        return InventoryGenerator()

    def test_exit_and_return_lines(self, generator: InventoryGenerator):
        """A container with an exit date gets both lines."""
        record = ContainerRecord(
            id=7,
            container_number="CSQU3054383",
            armador="MSC",
            exit_date="15/03/24",
            status="RIC OK",
        )

        items = generator.generate([record])

        assert [i.item_type for i in items] == ["Baixa Pátio", "Devolução"]
        assert all(i.status == "Devolvido (RIC OK)" for i in items)
        assert items[0].details == "Saída SJP registrada em: 15/03/24"
        assert items[1].details == "Status de devolução: RIC OK"
        assert items[0].container_id == 7

    def test_returned_by_status_only(self, generator: InventoryGenerator):
        """Returned without an exit date yields only the return line."""
        record = ContainerRecord(container_number="MSCU1234566", status="Devolvido")

        items = generator.generate([record])

        assert len(items) == 1
        assert items[0].item_type == "Devolução"

    def test_in_use_containers_skipped(self, generator: InventoryGenerator):
        """Containers still in use or pending produce no lines."""
        records = [
            ContainerRecord(container_number="A", exit_date="EMPATIO"),
            ContainerRecord(container_number="B", status="Aguardando Devolução"),
        ]

        assert generator.generate(records) == []
