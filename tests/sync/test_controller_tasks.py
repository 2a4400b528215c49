"""SessionController 任务操作测试

测试内容：
1. add_task 追加到末尾，position = 当前任务数
2. toggle_task / edit_task 远程确认后才修改
3. delete_task 删除后压缩 position；压缩失败返回 PARTIAL
4. 失败时内存树与调用前完全一致
"""

import time

from tasktree.core.models import FailureKind
from tasktree.sync import SessionController


def _snapshot(controller: SessionController) -> list[dict]:
    return [category.model_dump() for category in controller.categories]


async def _seed(controller: SessionController, texts: list[str]) -> tuple[str, list[str]]:
    category_id = controller.categories[0].id
    ids = []
    for text in texts:
        result = await controller.add_task(category_id, text)
        assert result.ok
        ids.append(result.value.id)
    return category_id, ids


class TestAddTask:
    async def test_position_equals_task_count(self, signed_in):
        category_id, _ = await _seed(signed_in, ["A", "B"])

        result = await signed_in.add_task(category_id, "C")

        assert result.ok
        assert result.value.position == 2
        tasks = signed_in.get_category(category_id).tasks
        assert [(t.text, t.position) for t in tasks] == [("A", 0), ("B", 1), ("C", 2)]

    async def test_new_task_defaults(self, signed_in, sqlite_store):
        before_ms = int(time.time() * 1000)
        category_id, (task_id,) = await _seed(signed_in, ["  Call client  "])

        task = signed_in.get_category(category_id).find_task(task_id)
        assert task.text == "Call client"
        assert task.completed is False
        assert task.created_at >= before_ms
        (record,) = await sqlite_store.select_tasks("user-1")
        assert record.id == task_id
        assert record.category_id == category_id

    async def test_blank_text_rejected(self, signed_in, failing_store):
        category_id = signed_in.categories[0].id

        result = await signed_in.add_task(category_id, "  ")

        assert result.error == FailureKind.VALIDATION
        assert failing_store.calls == []

    async def test_missing_category_rejected(self, signed_in, failing_store):
        result = await signed_in.add_task("missing", "A")

        assert result.error == FailureKind.NOT_FOUND
        assert failing_store.calls == []

    async def test_requires_authentication(self, controller):
        result = await controller.add_task("any", "A")
        assert result.error == FailureKind.UNAUTHENTICATED

    async def test_store_failure_leaves_tree_unchanged(self, signed_in, failing_store):
        category_id, _ = await _seed(signed_in, ["A"])
        before = _snapshot(signed_in)
        failing_store.fail("insert_task")

        result = await signed_in.add_task(category_id, "B")

        assert result.error == FailureKind.STORE
        assert _snapshot(signed_in) == before


class TestToggleTask:
    async def test_flips_completed_locally_and_remotely(self, signed_in, sqlite_store):
        category_id, (task_id,) = await _seed(signed_in, ["A"])

        first = await signed_in.toggle_task(category_id, task_id)
        assert first.ok
        assert first.value.completed is True
        assert signed_in.get_category(category_id).find_task(task_id).completed is True
        (record,) = await sqlite_store.select_tasks("user-1")
        assert record.completed is True

        await signed_in.toggle_task(category_id, task_id)
        assert signed_in.get_category(category_id).find_task(task_id).completed is False

    async def test_store_failure_leaves_tree_unchanged(self, signed_in, failing_store):
        category_id, (task_id,) = await _seed(signed_in, ["A"])
        before = _snapshot(signed_in)
        failing_store.fail("update_task")

        result = await signed_in.toggle_task(category_id, task_id)

        assert result.error == FailureKind.STORE
        assert _snapshot(signed_in) == before

    async def test_missing_task_is_noop(self, signed_in, failing_store):
        category_id, _ = await _seed(signed_in, ["A"])
        before = _snapshot(signed_in)
        failing_store.calls.clear()

        result = await signed_in.toggle_task(category_id, "missing")

        assert result.error == FailureKind.NOT_FOUND
        assert failing_store.calls == []
        assert _snapshot(signed_in) == before

    async def test_task_deleted_remotely_reports_failure(self, signed_in, sqlite_store):
        category_id, (task_id,) = await _seed(signed_in, ["A"])
        await sqlite_store.delete_task(task_id)

        result = await signed_in.toggle_task(category_id, task_id)

        assert result.error == FailureKind.STORE
        assert signed_in.get_category(category_id).find_task(task_id).completed is False


    async def test_returned_task_is_a_copy(self, signed_in):
        category_id, (task_id,) = await _seed(signed_in, ["A"])

        result = await signed_in.toggle_task(category_id, task_id)
        result.value.text = "mutated"

        assert signed_in.get_category(category_id).find_task(task_id).text == "A"


class TestEditTask:
    async def test_renames_task(self, signed_in, sqlite_store):
        category_id, (task_id,) = await _seed(signed_in, ["draft"])

        result = await signed_in.edit_task(category_id, task_id, " final ")

        assert result.ok
        assert signed_in.get_category(category_id).find_task(task_id).text == "final"
        (record,) = await sqlite_store.select_tasks("user-1")
        assert record.text == "final"

    async def test_blank_text_rejected(self, signed_in, failing_store):
        category_id, (task_id,) = await _seed(signed_in, ["draft"])
        failing_store.calls.clear()

        result = await signed_in.edit_task(category_id, task_id, "")

        assert result.error == FailureKind.VALIDATION
        assert failing_store.calls == []


class TestDeleteTask:
    async def test_delete_last_task_needs_no_rewrite(self, signed_in, failing_store):
        category_id, (a, b, c) = await _seed(signed_in, ["A", "B", "C"])
        failing_store.calls.clear()

        result = await signed_in.delete_task(category_id, c)

        assert result.ok
        assert failing_store.call_names() == ["delete_task"]
        tasks = signed_in.get_category(category_id).tasks
        assert [(t.id, t.position) for t in tasks] == [(a, 0), (b, 1)]

    async def test_delete_middle_task_compacts_positions(self, signed_in, sqlite_store):
        category_id, (a, b, c) = await _seed(signed_in, ["A", "B", "C"])

        result = await signed_in.delete_task(category_id, b)

        assert result.ok
        tasks = signed_in.get_category(category_id).tasks
        assert [(t.id, t.position) for t in tasks] == [(a, 0), (c, 1)]
        records = await sqlite_store.select_tasks("user-1")
        assert [(r.id, r.position) for r in records] == [(a, 0), (c, 1)]

    async def test_add_after_delete_keeps_positions_unique(self, signed_in):
        category_id, (a, _b, _c) = await _seed(signed_in, ["A", "B", "C"])
        await signed_in.delete_task(category_id, a)

        result = await signed_in.add_task(category_id, "D")

        assert result.value.position == 2
        positions = [t.position for t in signed_in.get_category(category_id).tasks]
        assert positions == [0, 1, 2]

    async def test_store_failure_leaves_tree_unchanged(self, signed_in, failing_store):
        category_id, (a, _b) = await _seed(signed_in, ["A", "B"])
        before = _snapshot(signed_in)
        failing_store.fail("delete_task")

        result = await signed_in.delete_task(category_id, a)

        assert result.error == FailureKind.STORE
        assert _snapshot(signed_in) == before

    async def test_compaction_failure_is_partial(self, signed_in, failing_store):
        category_id, (a, b, c) = await _seed(signed_in, ["A", "B", "C"])
        failing_store.fail("update_task")

        result = await signed_in.delete_task(category_id, a)

        assert result.error == FailureKind.PARTIAL
        # 删除已被远程确认，必须反映到内存树；position 保持旧值
        tasks = signed_in.get_category(category_id).tasks
        assert [(t.id, t.position) for t in tasks] == [(b, 1), (c, 2)]
        assert category_id in signed_in.stale_category_ids

    async def test_add_after_partial_delete_resyncs_positions(
        self, signed_in, failing_store, sqlite_store
    ):
        category_id, (a, b, c) = await _seed(signed_in, ["A", "B", "C"])
        failing_store.fail("update_task")
        await signed_in.delete_task(category_id, a)
        failing_store.heal()

        result = await signed_in.add_task(category_id, "D")

        assert result.ok
        assert result.value.position == 2
        tasks = signed_in.get_category(category_id).tasks
        assert [(t.text, t.position) for t in tasks] == [("B", 0), ("C", 1), ("D", 2)]
        assert category_id not in signed_in.stale_category_ids
        records = await sqlite_store.select_tasks("user-1")
        assert [(r.text, r.position) for r in records] == [("B", 0), ("C", 1), ("D", 2)]

    async def test_add_after_partial_delete_keeps_positions_unique(
        self, signed_in, failing_store
    ):
        category_id, (a, _b, _c) = await _seed(signed_in, ["A", "B", "C"])
        failing_store.fail("update_task")
        await signed_in.delete_task(category_id, a)

        result = await signed_in.add_task(category_id, "D")

        assert result.ok
        assert result.value.position == 3
        positions = [t.position for t in signed_in.get_category(category_id).tasks]
        assert positions == [1, 2, 3]
        assert len(set(positions)) == len(positions)
        assert category_id in signed_in.stale_category_ids

    async def test_missing_task_rejected(self, signed_in, failing_store):
        category_id, _ = await _seed(signed_in, ["A"])
        failing_store.calls.clear()

        result = await signed_in.delete_task(category_id, "missing")

        assert result.error == FailureKind.NOT_FOUND
        assert failing_store.calls == []


class TestProgress:
    async def test_per_category_and_overall(self, signed_in):
        category_id, (a, _b) = await _seed(signed_in, ["A", "B"])
        other_id = signed_in.categories[1].id
        other_task = (await signed_in.add_task(other_id, "C")).value
        await signed_in.toggle_task(category_id, a)
        await signed_in.toggle_task(other_id, other_task.id)

        per_category = signed_in.progress(category_id)
        assert (per_category.completed, per_category.total) == (1, 2)
        overall = signed_in.progress()
        assert (overall.completed, overall.total) == (2, 3)
        assert signed_in.progress("missing").total == 0
