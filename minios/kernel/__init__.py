"""Kernel bookkeeping: process control blocks, state transitions, system calls, IO coordination and memory client."""