"""Built-in sub-commands of the ``fetchless`` CLI.

* :mod:`~fetchless.commands.fetch` -- ``fetchless get``, a cached GET.
* :mod:`~fetchless.commands.cache` -- inspect or clear the response store.
* :mod:`~fetchless.commands.config` -- view and modify user settings.
"""
