"""过期订单 / 预占清理本地执行脚本"""

import argparse
import logging
from app.db.session import SessionLocal
from app.core.dependencies import get_redis, get_redlock
from app.services.expiry_sweeper import ExpirySweeper

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def run_cleanup(batch_size: int = 500, dry_run: bool = False):
    """执行一次清理

    Args:
        batch_size: 批处理大小
        dry_run: 是否为试运行模式（只统计不修改）

    Returns:
        {"deleted_orders": ..., "deleted_reservations": ...}
    """
    db = SessionLocal()
    try:
        if dry_run:
            sweeper = ExpirySweeper(db, batch_size=batch_size)
            pending = sweeper.count_pending()
            logger.info(
                f"试运行模式：发现 {pending['deleted_orders']} 个超时订单, "
                f"{pending['deleted_reservations']} 条过期预占待清理"
            )
            return pending

        sweeper = ExpirySweeper(db, get_redis(), get_redlock(), batch_size=batch_size)
        result = sweeper.sweep()
        if result.skipped:
            logger.info("已有清理任务在执行，本次未做处理")
        return {
            "deleted_orders": result.deleted_orders,
            "deleted_reservations": result.deleted_reservations,
        }

    except Exception as e:
        logger.error(f"清理执行失败: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()

def main(argv=None):
    """主函数"""
    parser = argparse.ArgumentParser(description='过期订单与库存预占清理工具')
    parser.add_argument(
        '--batch-size',
        type=int,
        default=500,
        help='批处理大小 (默认: 500)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='试运行模式，只统计不执行清理'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='详细输出模式'
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        result = run_cleanup(args.batch_size, args.dry_run)
        label = "试运行结果" if args.dry_run else "清理完成"
        print(
            f"✅ {label}：订单 {result['deleted_orders']} 个，"
            f"预占 {result['deleted_reservations']} 条"
        )
    except Exception as e:
        print(f"❌ 执行失败: {str(e)}")
        return 1

    return 0

if __name__ == "__main__":
    exit(main())
