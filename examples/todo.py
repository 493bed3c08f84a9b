"""
Todo list model built on liteclass.

Shows the pieces a view layer relies on: record types composed through
inheritance, validated fields, and the change events a renderer subscribes
to instead of polling.
"""

import logging
from typing import Any, Dict

from liteclass import ChangeEvent, Record, readonly

logger = logging.getLogger(__name__)


class Model(Record, statics={"TEMPLATE": readonly("<li>{title}</li>")}):
    """Base model that can render itself."""

    def render(self) -> str:
        return type(self).TEMPLATE.format(**self.to_plain_object())


class Task(Model, properties={
    "title": {"default_value": "", "validator": str},
    "done": {"default_value": False, "validator": bool},
}):
    """A single todo entry."""

    def toggle(self) -> 'Task':
        return self.set_property("done", not self.get_property("done"))


class TaskList(Model,
               properties={"name": {"default_value": "Todo", "validator": str}},
               aggregations={"tasks": {"validator": Task}}):
    """An ordered list of tasks."""

    def init(self, settings: Dict[str, Any] = None) -> 'TaskList':
        self.on("change:tasks", self._log_change)
        return self

    def _log_change(self, event: ChangeEvent) -> None:
        logger.info(f"{event.action}: {event.value!r} (index={event.index})")

    def pending(self):
        return [task for task in self.get_aggregation("tasks") if not task.get_property("done")]

    def render(self) -> str:
        items = "".join(task.render() for task in self.get_aggregation("tasks"))
        return f"<h3>{self.get_property('name')}</h3><ul>{items}</ul>"


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    tasks = TaskList({"name": "Groceries"})
    tasks.add_aggregation("tasks", Task(title="milk"))
    tasks.add_first_aggregation("tasks", Task(title="bread"))
    tasks.insert_aggregation_at("tasks", 1, Task(title="eggs"))

    eggs = tasks.get_aggregation_at("tasks", 1)
    eggs.on("change:done:set", lambda event: logger.info(f"eggs done: {event.old_value} -> {event.new_value}"))
    eggs.toggle()

    print(tasks.render())
    print([task.get_property("title") for task in tasks.pending()])

    tasks.destroy()


if __name__ == "__main__":
    main()
