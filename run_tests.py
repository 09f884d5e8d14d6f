#!/usr/bin/env python3
"""
单元测试运行脚本
按测试集运行 pytest，可选生成覆盖率报告
"""

import subprocess
import sys
import argparse

# 测试集 -> 测试文件
SUITES = {
    "ledger": ["tests/test_reservation_ledger.py"],
    "service": [
        "tests/test_reservation_ledger.py",
        "tests/test_cart_service.py",
        "tests/test_checkout_service.py",
        "tests/test_expiry_sweeper.py",
    ],
    "router": [
        "tests/test_cart_router.py",
        "tests/test_order_router.py",
        "tests/test_catalog_router.py",
        "tests/test_cron_router.py",
    ],
    "admin": [
        "tests/test_catalog_router.py",
        "tests/test_admin_customers.py",
        "tests/test_admin_variations.py",
    ],
    "models": ["tests/test_models.py"],
    "deps": ["tests/test_dependencies.py"],
    "tasks": ["tests/test_celery_tasks.py", "tests/test_manual_cleanup.py"],
    "app": ["tests/test_main.py"],
}


def build_command(targets, keyword=None, verbose=False, coverage=False):
    cmd = [sys.executable, "-m", "pytest", *targets]
    cmd.append("-v" if verbose else "-q")
    cmd.extend(["--tb=short", "--disable-warnings"])
    if keyword:
        cmd.extend(["-k", keyword])
    if coverage:
        cmd.extend([
            "--cov=app",
            "--cov=tasks",
            "--cov-report=html:htmlcov",
            "--cov-report=term-missing",
        ])
    return cmd


def main(argv=None):
    parser = argparse.ArgumentParser(description="烘焙商城单元测试运行器")
    parser.add_argument(
        "--suite",
        choices=sorted(SUITES),
        action="append",
        help="只运行指定测试集，可重复指定"
    )
    parser.add_argument("--coverage", action="store_true", help="生成覆盖率报告")
    parser.add_argument("--verbose", action="store_true", help="详细输出模式")
    parser.add_argument(
        "test_name",
        nargs="?",
        help="测试名关键字 (如 test_release_twice_is_noop)，或 tests/ 下的节点ID"
    )
    args = parser.parse_args(argv)

    targets = []
    for suite in args.suite or []:
        targets.extend(t for t in SUITES[suite] if t not in targets)

    keyword = None
    if args.test_name and "::" in args.test_name:
        targets.append(f"tests/{args.test_name}")
    elif args.test_name:
        keyword = args.test_name

    cmd = build_command(targets or ["tests/"], keyword, args.verbose or bool(args.test_name), args.coverage)
    print(f"🚀 运行命令: {' '.join(cmd)}")
    print("=" * 50)

    returncode = subprocess.run(cmd).returncode
    if returncode == 0:
        print("\n✅ 测试运行完成")
        if args.coverage:
            print("📊 覆盖率报告已生成到 htmlcov/ 目录")
    else:
        print(f"\n❌ 测试失败，退出码: {returncode}")
    return returncode


if __name__ == "__main__":
    sys.exit(main())
