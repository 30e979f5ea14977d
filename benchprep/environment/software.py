import os


class Software:
    @staticmethod
    def kernel_release() -> str:
        return os.uname().release
