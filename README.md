# minios

`minios` holds the parts of a small distributed operating-system simulator.
The parts talk to each other over HTTP with JSON bodies.

- **cpu** (`minios.cpu`): fetches instructions from memory and runs them.
  Logical addresses are translated by a multi-level MMU with an optional TLB
  (FIFO or LRU) and an optional page cache (CLOCK or CLOCK-M) that writes
  modified pages back to memory.
- **io** (`minios.iodevice`): a named device that waits the requested number
  of milliseconds and then tells the kernel the operation is over.
- **kernel bookkeeping** (`minios.kernel`): process control blocks, the
  process queues and state transitions with per-state metrics and burst
  estimates, system calls, IO device coordination, and a client for the
  memory server.

## What this package does not do

There is no kernel program here: no kernel HTTP server, no command to start
one, no long, medium or short term scheduler loop and no dispatching of
processes to CPUs. The kernel modules are a library for building one. The
memory server, which holds process instructions and page tables, is not part
of this package either. The CPU and I/O commands below expect a kernel and a
memory server to be reachable at the addresses in their configuration.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running

Each command reads a JSON configuration file.

Start a CPU with its own name. It handshakes with memory to learn the page
size and page-table shape, registers with the kernel and then serves
`/datoCPU`, `/interrupcion` and `/reconectar`:

```
minios-cpu CPU1 cpu.json
```

The CPU configuration keys are `ip_cpu`, `port_cpu`, `ip_kernel`,
`port_kernel`, `ip_memory`, `port_memory`, `tlb_entries`, `tlb_replacement`,
`cache_entries`, `cache_replacement`, `cache_delay` and `log_level`. A
`tlb_entries` or `cache_entries` of 0 turns that layer off.

Start an I/O device. It registers with the kernel and serves `/solicitud-io`:

```
minios-io DISK io.json
```

The I/O configuration keys are `ip_kernel`, `port_kernel`, `ip_io`,
`port_io` and `log_level`. Stopping the device with Ctrl-C or SIGTERM tells
the kernel the instance has gone.

`log_level` is one of `DEBUG`, `INFO`, `WARN`, `WARNING` or `ERROR`.

## Instructions

The CPU (`minios.cpu.cycle.Cpu`) understands these instructions:

| Instruction             | Effect                                               |
|-------------------------|------------------------------------------------------|
| `NOOP`                  | does nothing                                         |
| `WRITE address text`    | writes `text` at a logical address                   |
| `READ address size`     | reads `size` bytes at a logical address              |
| `GOTO n`                | sets the program counter to `n`                      |
| `IO device ms`          | hands the process back to the kernel for an IO       |
| `INIT_PROC file size`   | asks the kernel to create a process, then continues  |
| `DUMP_MEMORY`           | hands the process back to the kernel for a dump      |
| `EXIT`                  | ends the process                                     |

Whenever the process leaves the CPU, its cached pages are flushed (modified
ones are written back) and the TLB is cleared.

## Using it as a library

```python
from minios.cpu.mmu import Tlb

tlb = Tlb(capacity=4, policy="LRU")
tlb.add(pid=0, page=3, frame=12)
frame = tlb.lookup(0, 3)   # 12; None on a miss
```

`minios.cpu.cache.PageCache` can be driven directly with a write-back
callable, and `minios.cpu.mmu.Mmu` takes any function that maps a PID and
per-level page-table indices to a frame.

On the kernel side, `minios.kernel.pcb.PcbFactory` creates PCBs with
consecutive PIDs, `minios.kernel.state.KernelState.transition` moves a PCB
between queues and keeps its metrics, `minios.kernel.syscalls.SyscallHandler`
serves IO, INIT_PROC and DUMP_MEMORY, and
`minios.kernel.io_protocol.IoCoordinator` registers, finishes and
disconnects IO device instances.