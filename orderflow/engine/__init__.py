"""
Order intake, confirmation worker and lifecycle events.

Import from the submodules directly:
    from orderflow.engine.intake import OrderIntake
    from orderflow.engine.worker import ConfirmationWorker, WorkerPool
"""
