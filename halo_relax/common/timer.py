from time import perf_counter

__all__ = ["Timer"]


class Timer:
    def __init__(self):
        self.times = []
        self.start_time = 0.0
        self.stop_time = 0.0

    def start(self):
        self.start_time = perf_counter()

    def stop(self) -> float:
        self.stop_time = perf_counter()
        self.times.append(self.stop_time - self.start_time)
        return self.times[-1]

    def last_time(self) -> float:
        return self.times[-1]

    def total_time(self) -> float:
        return sum(self.times)

    def average_time(self) -> float:
        if len(self.times) == 0:
            return 0.0
        return self.total_time() / len(self.times)
