from stampede.runner import run_from_argv

if __name__ == "__main__":
    run_from_argv()
