from external_task_client.worker.main import run

run()
